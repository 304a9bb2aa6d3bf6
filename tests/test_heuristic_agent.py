import random
from collections import deque

import pytest

from agents.actions import ActionKind
from agents.heuristic_agent import HeuristicAgent, Opportunity
from agents.protocols import Observable
from config import SimulationConfig
from simulation.economic_cycle import CyclePhase
from simulation.market import Market

PHASE = CyclePhase.EXPANSION


def _agent(cfg: SimulationConfig, strategy: str = "balanced", seed: int = 0) -> HeuristicAgent:
    return HeuristicAgent("bot_1", "Trader", strategy, config=cfg, rng=random.Random(seed))


def _with_market(deterministic_config: SimulationConfig, **overrides) -> SimulationConfig:
    initial = {name: entry.model_dump() for name, entry in deterministic_config.initial_market.items()}
    initial.update(overrides)
    return SimulationConfig(
        market=deterministic_config.market.model_dump(),
        initial_market=initial,
        INITIAL_AGENTS=[],
    )


def test_personality_ranges() -> None:
    for seed in range(20):
        personality = _agent(SimulationConfig(), seed=seed).personality
        assert 0.0 <= personality.risk_tolerance <= 1.0
        assert 0.2 <= personality.greed <= 0.8
        assert 0.2 <= personality.patience <= 1.0
        assert 0.5 <= personality.confidence <= 1.0


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(ValueError):
        _agent(SimulationConfig(), strategy="yolo")


def test_quiet_market_produces_hold(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = _agent(deterministic_config)

    action = agent.decide(market, PHASE, now_ms=0)

    assert action.kind is ActionKind.HOLD
    assert "threshold" in agent.last_decision_trace["reasoning"]
    assert agent.sentiment == "neutral"


def test_strong_demand_pressure_triggers_buy(deterministic_config) -> None:
    cfg = _with_market(deterministic_config, water={"price": 10, "supply": 500, "demand": 3000})
    market = Market(cfg)
    agent = _agent(cfg)

    action = agent.decide(market, PHASE, now_ms=0)

    assert agent.sentiment == "bullish"
    assert action.kind is ActionKind.BUY
    assert action.resource == "water"
    assert 1 <= action.quantity <= 100


def test_patience_timer_blocks_trading(deterministic_config) -> None:
    cfg = _with_market(deterministic_config, water={"price": 10, "supply": 500, "demand": 3000})
    market = Market(cfg)
    agent = _agent(cfg)
    agent.next_action_at_ms = 50_000

    action = agent.decide(market, PHASE, now_ms=10_000)

    assert action.kind is ActionKind.HOLD
    assert agent.last_decision_trace["reasoning"].startswith("waiting")


def test_successful_trade_restarts_patience_timer(deterministic_config) -> None:
    cfg = _with_market(deterministic_config, water={"price": 10, "supply": 500, "demand": 3000})
    market = Market(cfg)
    agent = _agent(cfg)

    record = agent.act(market, PHASE, now_ms=100_000, tick=1)

    assert record.success is True
    assert record.action.kind is ActionKind.BUY
    assert 110_000 <= agent.next_action_at_ms <= 140_000
    assert agent.trade_count == 1


def test_contrarian_inverts_the_trend_term(deterministic_config) -> None:
    market = Market(deterministic_config)
    trend = _agent(deterministic_config, strategy="balanced")
    contrarian = _agent(deterministic_config, strategy="contrarian")
    for agent in (trend, contrarian):
        agent.price_memory["water"] = deque([20.0, 20.0, 20.0], maxlen=20)
        agent.sentiment = "neutral"

    # price 10 against a mean of 20, ratio 0.8
    assert trend.score_resource(market, "water").score == pytest.approx((-0.15 - 0.06) * 0.5)
    assert contrarian.score_resource(market, "water").score == pytest.approx((0.2 - 0.06) * 0.5)


def test_sell_size_is_bounded_by_holdings(deterministic_config) -> None:
    cfg = deterministic_config.model_copy(
        update={
            "heuristic": deterministic_config.heuristic.model_copy(
                update={"quantity_multipliers": {"balanced": 10.0}}
            )
        }
    )
    market = Market(cfg)
    agent = _agent(cfg)
    agent.portfolio.holdings["water"] = 3

    quantity = agent.size_order(market, Opportunity("water", -0.9, 0.0, 0.2))

    assert quantity == 3


def test_buy_size_is_bounded_by_cash(deterministic_config) -> None:
    cfg = deterministic_config.model_copy(
        update={
            "heuristic": deterministic_config.heuristic.model_copy(
                update={"quantity_multipliers": {"balanced": 10.0}}
            )
        }
    )
    market = Market(cfg)
    agent = _agent(cfg)
    agent.portfolio.cash = 45.0

    quantity = agent.size_order(market, Opportunity("water", 0.9, 0.0, 3.0))

    assert quantity == 4


def test_confidence_and_patience_adapt_to_outcomes(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = _agent(deterministic_config)
    agent.next_action_at_ms = 10**9
    worth = agent.portfolio.net_worth(market)

    agent._net_worth_at_last_trade = worth - 100.0
    agent.decide(market, PHASE, now_ms=0)
    assert agent.confidence_level == pytest.approx(0.51)
    assert agent.patience_scale == pytest.approx(0.95)

    agent._net_worth_at_last_trade = worth + 100.0
    agent.decide(market, PHASE, now_ms=0)
    assert agent.confidence_level == pytest.approx(0.50)
    assert agent.patience_scale == pytest.approx(0.95 * 1.1)


def test_inspection_reports_heuristic_state(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = _agent(deterministic_config, strategy="adaptive")

    inspection = agent.inspect(market)

    assert inspection["kind"] == "heuristic"
    assert inspection["strategy"] == "adaptive"
    assert inspection["epsilon"] is None
    assert inspection["statistics"]["confidence_level"] == pytest.approx(0.5)
    assert inspection["net_worth"] == pytest.approx(2600.0)


def test_heuristic_agent_is_observable(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = _agent(deterministic_config, seed=3)
    agent.act(market, PHASE, now_ms=0, tick=1)

    assert isinstance(agent, Observable)
    assert agent.last_decision_trace is not None
    assert agent.inspect(market)["value_table_sample"] is None
