"""Discretization of the observed world into a finite, hashable StateKey.

Every continuous quantity is mapped to one of five buckets (0..4). The key is a
pure function of (market, portfolio, cycle phase); two calls with the same
inputs produce equal keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from agents.portfolio import Portfolio
    from agents.protocols import MarketView
    from simulation.economic_cycle import CyclePhase

PRICE_RATIO_EDGES = np.array([0.7, 0.9, 1.1, 1.3])
LEVEL_EDGES = np.array([200, 500, 1000, 2000])
HOLDING_EDGES = np.array([0, 10, 30, 60])
CASH_EDGES = np.array([100, 500, 1500, 3000])


@dataclass(frozen=True, slots=True)
class ResourceLevels:
    price: int
    supply: int
    demand: int
    holding: int


@dataclass(frozen=True, slots=True)
class StateKey:
    resources: tuple[tuple[str, ResourceLevels], ...]
    cycle: CyclePhase
    cash: int

    def describe(self) -> str:
        parts = [
            f"{name}:{lv.price}{lv.supply}{lv.demand}{lv.holding}" for name, lv in self.resources
        ]
        return f"{self.cycle.value}|cash{self.cash}|" + ",".join(parts)


def bucket(value: float, edges: np.ndarray, inclusive_upper: bool = False) -> int:
    """Index of the bucket `value` falls into, 0..len(edges)."""
    return int(np.digitize(value, edges, right=inclusive_upper))


def encode_resource(market: MarketView, portfolio: Portfolio, resource: str) -> ResourceLevels:
    entry = market.entry(resource)
    return ResourceLevels(
        price=bucket(entry.price / market.base_price(resource), PRICE_RATIO_EDGES),
        supply=bucket(entry.supply, LEVEL_EDGES),
        demand=bucket(entry.demand, LEVEL_EDGES),
        holding=bucket(portfolio.holding(resource), HOLDING_EDGES, inclusive_upper=True),
    )


def encode_state(market: MarketView, portfolio: Portfolio, cycle_phase: CyclePhase) -> StateKey:
    return StateKey(
        resources=tuple(
            (name, encode_resource(market, portfolio, name)) for name in market.resource_names
        ),
        cycle=cycle_phase,
        cash=bucket(portfolio.cash, CASH_EDGES),
    )
