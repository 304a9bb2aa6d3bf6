from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from config import CONFIG_MODEL, SimulationConfig

if TYPE_CHECKING:
    from agents.protocols import MarketView


@dataclass
class Portfolio:
    """Cash plus integer holdings per resource."""

    cash: float = 0.0
    holdings: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig | None = None,
        resources: Iterable[str] | None = None,
    ) -> Portfolio:
        cfg = config or CONFIG_MODEL
        names = list(resources) if resources is not None else cfg.resource_names
        start = cfg.portfolio.starting_holdings
        return cls(
            cash=float(cfg.portfolio.starting_cash),
            holdings={name: int(start.get(name, 0)) for name in names},
        )

    def holding(self, resource: str) -> int:
        return int(self.holdings.get(resource, 0))

    def net_worth(self, market: MarketView) -> float:
        total = float(self.cash)
        for resource, quantity in self.holdings.items():
            if quantity:
                total += quantity * market.price(resource)
        return total

    def to_dict(self) -> dict[str, object]:
        return {"cash": round(self.cash, 2), "holdings": dict(self.holdings)}
