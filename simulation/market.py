"""Commodity market: per-resource price, supply and demand.

The market is the only component that mutates price/supply/demand. Every
mutation path ends in `_clamp_entry`, so the configured bounds hold after each
public call.
"""

from __future__ import annotations

import math
import random
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from agents.actions import Action, ActionKind
from config import CONFIG_MODEL, SimulationConfig
from logger import log

if TYPE_CHECKING:
    from agents.portfolio import Portfolio
    from simulation.economic_cycle import CycleMultipliers


@dataclass(frozen=True, slots=True)
class Resource:
    name: str
    base_price: float


@dataclass(slots=True)
class MarketEntry:
    price: float
    supply: int
    demand: int

    @property
    def ratio(self) -> float:
        """Demand/supply pressure. Supply counts as at least one unit."""
        return self.demand / max(self.supply, 1)

    def to_dict(self) -> dict[str, float]:
        return {"price": self.price, "supply": self.supply, "demand": self.demand}


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


class Market:
    def __init__(
        self,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config: SimulationConfig = config or CONFIG_MODEL
        self.settings = self.config.market
        self.rng: random.Random = rng or random.Random()

        self.resources: dict[str, Resource] = {
            r.name: Resource(r.name, float(r.base_price)) for r in self.config.resources
        }
        self.entries: dict[str, MarketEntry] = {}
        for name in self.resources:
            initial = self.config.initial_market[name]
            entry = MarketEntry(float(initial.price), int(initial.supply), int(initial.demand))
            self._clamp_entry(entry)
            self.entries[name] = entry

        self.price_history: dict[str, deque[float]] = {
            name: deque([entry.price], maxlen=self.settings.price_history_length)
            for name, entry in self.entries.items()
        }
        self.assert_invariants()

    # --- Read access ---
    @property
    def resource_names(self) -> list[str]:
        return list(self.resources)

    def entry(self, resource: str) -> MarketEntry:
        return self.entries[resource]

    def price(self, resource: str) -> float:
        return self.entries[resource].price

    def base_price(self, resource: str) -> float:
        return self.resources[resource].base_price

    def ratio(self, resource: str) -> float:
        return self.entries[resource].ratio

    def snapshot(self) -> dict[str, dict[str, float]]:
        return {name: entry.to_dict() for name, entry in self.entries.items()}

    # --- Trading ---
    def apply_trade(self, portfolio: Portfolio, action: Action) -> bool:
        """Execute `action` for `portfolio` at the current price.

        Returns False (and changes nothing) when the action is not executable.
        """
        if action.kind is ActionKind.HOLD:
            return True
        resource = action.resource
        quantity = int(action.quantity)
        if resource is None or resource not in self.entries or quantity <= 0:
            return False

        entry = self.entries[resource]
        cost = entry.price * quantity
        demand_impact = math.floor(self.settings.trade_demand_impact * quantity)

        if action.kind is ActionKind.BUY:
            if portfolio.cash < cost or entry.supply < quantity:
                return False
            entry.supply -= quantity
            entry.demand += demand_impact
            portfolio.cash -= cost
            portfolio.holdings[resource] = portfolio.holding(resource) + quantity
        else:
            if portfolio.holding(resource) < quantity:
                return False
            entry.supply += quantity
            entry.demand -= demand_impact
            portfolio.cash += cost
            portfolio.holdings[resource] = portfolio.holding(resource) - quantity

        self._clamp_entry(entry)
        return True

    # --- Dynamics ---
    def advance_tick(self, multipliers: CycleMultipliers, noise: float | None = None) -> None:
        """Recompute prices from demand pressure, then drift supply and demand.

        `noise` overrides the random price noise for every resource; pass 0.0
        for a deterministic price step.
        """
        settings = self.settings
        for name, entry in self.entries.items():
            tick_noise = noise
            if tick_noise is None:
                tick_noise = (
                    self.rng.uniform(-settings.price_noise, settings.price_noise)
                    if settings.price_noise > 0
                    else 0.0
                )
            change = (
                (entry.ratio - 1.0) * settings.price_sensitivity * multipliers.price_volatility
                + tick_noise
            )
            entry.price = round_half_up(entry.price * (1.0 + change))

            supply_step = self._drift(settings.supply_drift, upper_exclusive=True)
            demand_step = self._drift(settings.demand_drift, upper_exclusive=False)
            entry.supply += int(round(supply_step * multipliers.supply))
            entry.demand += int(round(demand_step * multipliers.demand))
            self._clamp_entry(entry)
            self.price_history[name].append(entry.price)

    def _drift(self, width: int, upper_exclusive: bool) -> int:
        if width <= 0:
            return 0
        upper = width - 1 if upper_exclusive else width
        return self.rng.randint(-width, upper)

    def apply_cycle_shock(self, multipliers: CycleMultipliers) -> None:
        for entry in self.entries.values():
            entry.supply = math.floor(entry.supply * multipliers.supply)
            entry.demand = math.floor(entry.demand * multipliers.demand)
            self._clamp_entry(entry)

    def apply_event_increment(self, resource: str, d_supply: float, d_demand: float) -> None:
        entry = self.entries.get(resource)
        if entry is None:
            log(f"Market: ignoring event increment for unknown resource {resource}", level="WARNING")
            return
        entry.supply = math.floor(entry.supply * (1.0 + d_supply))
        entry.demand = math.floor(entry.demand * (1.0 + d_demand))
        self._clamp_entry(entry)

    # --- Statistics ---
    def volatility(self) -> float:
        """Mean coefficient of variation of the most recent prices."""
        window = self.settings.volatility_window
        values: list[float] = []
        for history in self.price_history.values():
            recent = np.asarray(list(history)[-window:], dtype=float)
            if recent.size < 2 or recent.mean() <= 0:
                continue
            values.append(float(recent.std() / recent.mean()))
        if not values:
            return 0.0
        return float(np.mean(values))

    # --- Invariants ---
    def _clamp_entry(self, entry: MarketEntry) -> None:
        s = self.settings
        entry.price = float(min(max(entry.price, s.min_price), s.max_price))
        entry.supply = int(min(max(entry.supply, s.min_supply), s.max_supply))
        entry.demand = int(min(max(entry.demand, s.min_demand), s.max_demand))

    def assert_invariants(self) -> None:
        s = self.settings
        for name, entry in self.entries.items():
            assert s.min_price <= entry.price <= s.max_price, f"{name} price out of bounds"
            assert s.min_supply <= entry.supply <= s.max_supply, f"{name} supply out of bounds"
            assert s.min_demand <= entry.demand <= s.max_demand, f"{name} demand out of bounds"
