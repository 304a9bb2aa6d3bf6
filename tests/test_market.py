import math
import random

import pytest

from agents.actions import Action
from agents.portfolio import Portfolio
from config import SimulationConfig
from simulation.economic_cycle import CycleMultipliers
from simulation.market import Market, round_half_up

NEUTRAL = CycleMultipliers(1.0, 1.0, 1.0)
EXPANSION = CycleMultipliers(1.08, 1.12, 0.8)


def _portfolio(cash: float = 1000.0, **holdings: int) -> Portfolio:
    base = {"water": 0, "food": 0, "energy": 0, "materials": 0}
    base.update(holdings)
    return Portfolio(cash=cash, holdings=base)


def test_buy_moves_cash_holdings_supply_and_demand(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = _portfolio()

    assert market.apply_trade(portfolio, Action.buy("water", 50)) is True

    assert portfolio.cash == pytest.approx(500.0)
    assert portfolio.holding("water") == 50
    assert market.entry("water").supply == 950
    assert market.entry("water").demand == 805


def test_sell_has_no_affordability_check(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = _portfolio(cash=0.0, food=20)

    assert market.apply_trade(portfolio, Action.sell("food", 20)) is True

    assert portfolio.cash == pytest.approx(300.0)
    assert portfolio.holding("food") == 0
    assert market.entry("food").supply == 820
    assert market.entry("food").demand == 898


def test_net_worth_is_conserved_by_round_trip(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = _portfolio(cash=1000.0)
    before = portfolio.net_worth(market)

    assert market.apply_trade(portfolio, Action.buy("energy", 17))
    assert portfolio.net_worth(market) == pytest.approx(before)
    assert market.apply_trade(portfolio, Action.sell("energy", 17))

    assert portfolio.cash == pytest.approx(1000.0)
    assert portfolio.holding("energy") == 0


@pytest.mark.parametrize(
    "action",
    [
        Action.buy("water", 0),
        Action.buy("water", -3),
        Action.buy("unobtainium", 1),
        Action.buy("materials", 1000),
        Action.sell("food", 1),
    ],
)
def test_invalid_trades_are_rejected_without_side_effects(deterministic_config, action) -> None:
    market = Market(deterministic_config)
    portfolio = _portfolio(cash=100.0)
    snapshot = market.snapshot()

    assert market.apply_trade(portfolio, action) is False

    assert market.snapshot() == snapshot
    assert portfolio.cash == pytest.approx(100.0)
    assert all(q == 0 for q in portfolio.holdings.values())


def test_buy_requires_supply(deterministic_config) -> None:
    market = Market(deterministic_config)
    market.entries["water"].supply = 60
    portfolio = _portfolio(cash=10_000.0)

    assert market.apply_trade(portfolio, Action.buy("water", 61)) is False
    assert market.apply_trade(portfolio, Action.buy("water", 60)) is True
    # level clamped to the floor, portfolio side exact
    assert market.entry("water").supply == 50
    assert portfolio.holding("water") == 60


def test_hold_always_succeeds(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = _portfolio(cash=0.0)

    assert market.apply_trade(portfolio, Action.hold()) is True


def test_buy_then_advance_tick_scenario(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = _portfolio()
    assert market.apply_trade(portfolio, Action.buy("water", 50))

    market.advance_tick(EXPANSION, noise=0.0)

    ratio = 805 / 950
    expected = math.floor(10 * (1 + (ratio - 1) * 0.08 * 0.8) + 0.5)
    assert market.price("water") == expected
    # zero drift leaves the levels untouched
    assert market.entry("water").supply == 950
    assert market.entry("water").demand == 805


def test_advance_tick_price_follows_demand_pressure() -> None:
    cfg = SimulationConfig(
        market={"price_noise": 0.0, "supply_drift": 0, "demand_drift": 0},
        initial_market={
            "water": {"price": 10, "supply": 500, "demand": 2000},
            "food": {"price": 15, "supply": 2000, "demand": 500},
            "energy": {"price": 20, "supply": 600, "demand": 600},
            "materials": {"price": 25, "supply": 500, "demand": 600},
        },
    )
    market = Market(cfg)

    market.advance_tick(NEUTRAL)

    assert market.price("water") == 12  # 10 * (1 + 3 * 0.08) = 12.4
    assert market.price("food") == 14  # 15 * (1 - 0.75 * 0.08) = 14.1
    assert market.price("energy") == 20


def test_round_half_up() -> None:
    assert round_half_up(12.5) == 13
    assert round_half_up(13.5) == 14
    assert round_half_up(12.49) == 12


def test_price_never_leaves_bounds() -> None:
    cfg = SimulationConfig(
        market={"price_noise": 0.0, "supply_drift": 0, "demand_drift": 0, "max_price": 30},
        initial_market={
            "water": {"price": 1, "supply": 5000, "demand": 50},
            "food": {"price": 29, "supply": 50, "demand": 5000},
            "energy": {"price": 20, "supply": 600, "demand": 700},
            "materials": {"price": 25, "supply": 500, "demand": 600},
        },
    )
    market = Market(cfg)

    for _ in range(20):
        market.advance_tick(CycleMultipliers(1.0, 1.0, 1.5))
        market.assert_invariants()

    assert market.price("water") == 1
    assert market.price("food") == 30


def test_random_drift_respects_bounds_over_many_ticks() -> None:
    market = Market(SimulationConfig(seed=3), rng=random.Random(3))
    for tick in range(500):
        multipliers = EXPANSION if tick % 2 else CycleMultipliers(0.85, 0.82, 1.5)
        market.advance_tick(multipliers)
        market.assert_invariants()


def test_cycle_shock_and_event_increment_floor_and_clamp(deterministic_config) -> None:
    market = Market(deterministic_config)

    market.apply_cycle_shock(CycleMultipliers(0.5, 0.75, 1.5))
    assert market.entry("water").supply == 500
    assert market.entry("water").demand == 600

    market.apply_event_increment("materials", -0.95, 20.0)
    assert market.entry("materials").supply == 50
    assert market.entry("materials").demand == 5000


def test_volatility_uses_recent_price_history(deterministic_config) -> None:
    market = Market(deterministic_config)
    assert market.volatility() == 0.0

    for name in market.resource_names:
        market.price_history[name].extend([10.0, 10.0, 10.0, 10.0])
    assert market.volatility() == pytest.approx(0.0)

    market.price_history["water"].extend([8.0, 12.0, 8.0, 12.0, 10.0])
    assert market.volatility() > 0.0


def test_ratio_treats_empty_supply_as_one_unit() -> None:
    from simulation.market import MarketEntry

    assert MarketEntry(price=10.0, supply=0, demand=120).ratio == 120.0
