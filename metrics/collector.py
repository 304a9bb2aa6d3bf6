"""MetricsCollector - in-memory sink for a simulation run.

Implements the persistence and observability collaborator interfaces of
`MarketSimulation` and additionally samples per-agent and per-resource time
series for export.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from config import CONFIG_MODEL, SimulationConfig
from logger import log

from .base import AgentMetricsDict, MetricDict, TimeSeriesDict, TimeStep, TrackedAgent

if TYPE_CHECKING:
    from agents.actions import Action
    from agents.base_agent import BaseAgent
    from simulation.events import FinalizedEvent
    from simulation.market import Market


class MetricsCollector:
    """
    Collects trades, price snapshots, event records, errors and agent metrics.

    Everything is kept in plain lists/dicts so the exporter can turn it into
    pandas DataFrames at the end of a run.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        """Initialize the metrics collector."""
        self.config = config or CONFIG_MODEL
        self.export_path = Path(self.config.metrics_export_path)

        self.transactions: List[MetricDict] = []
        self.price_snapshots: List[MetricDict] = []
        self.event_records: List[MetricDict] = []
        self.errors: List[MetricDict] = []
        self.agent_metrics: AgentMetricsDict = {}
        self.market_metrics: TimeSeriesDict = {}
        self.registered_agents: Dict[str, MetricDict] = {}

    # --- Persistence collaborator ---
    def save_transaction(
        self, agent_id: str, action: Action, resulting_price: float | None, tick: int
    ) -> None:
        self.transactions.append(
            {
                "tick": int(tick),
                "agent_id": agent_id,
                "kind": action.kind.value,
                "resource": action.resource,
                "quantity": action.quantity,
                "price": resulting_price,
            }
        )

    def save_price_snapshot(
        self, market: Dict[str, Dict[str, float]], tick: int, cycle_phase: str
    ) -> None:
        for resource, entry in market.items():
            self.price_snapshots.append(
                {
                    "tick": int(tick),
                    "cycle_phase": cycle_phase,
                    "resource": resource,
                    "price": entry["price"],
                    "supply": entry["supply"],
                    "demand": entry["demand"],
                }
            )

    def save_event_record(self, record: FinalizedEvent) -> None:
        row = record.to_dict()
        row["target_resources"] = ",".join(record.target_resources)
        row.pop("final_market", None)
        self.event_records.append(row)
        log(
            f"MetricsCollector: stored event {record.event_id} "
            f"(severity {record.severity:.3f})",
            level="INFO",
        )

    # --- Observability collaborator ---
    def record_error(self, source: str, message: str, context: Dict[str, Any]) -> None:
        self.errors.append({"source": source, "message": message, **context})
        log(f"MetricsCollector: error from {source}: {message}", level="WARNING")

    # --- Sampling ---
    def register_agent(self, agent: TrackedAgent) -> None:
        if agent.unique_id in self.registered_agents:
            return
        self.registered_agents[agent.unique_id] = {
            "name": agent.name,
            "kind": agent.kind,
            "strategy": agent.strategy,
        }
        self.agent_metrics.setdefault(agent.unique_id, {})

    def collect_agent_metrics(
        self, agents: Iterable[BaseAgent], market: Market, step: TimeStep
    ) -> None:
        for agent in agents:
            self.register_agent(agent)
            stats = agent.statistics()
            step_metrics: MetricDict = {
                "name": agent.name,
                "kind": agent.kind,
                "strategy": agent.strategy,
                "cash": round(agent.portfolio.cash, 2),
                "net_worth": round(agent.net_worth(market), 2),
                "trades": stats.get("trades", 0),
                "failed_trades": stats.get("failed_trades", 0),
                "last_reward": agent.last_reward,
            }
            epsilon = getattr(agent, "epsilon", None)
            if epsilon is not None:
                step_metrics["epsilon"] = round(float(epsilon), 6)
            for resource, quantity in agent.portfolio.holdings.items():
                step_metrics[f"holding_{resource}"] = quantity
            self.agent_metrics.setdefault(agent.unique_id, {})[step] = step_metrics

    def collect_market_metrics(self, market: Market, step: TimeStep, cycle_phase: str) -> None:
        step_metrics: MetricDict = {"cycle_phase": cycle_phase, "volatility": market.volatility()}
        for resource, entry in market.snapshot().items():
            for field, value in entry.items():
                step_metrics[f"{resource}_{field}"] = value
        self.market_metrics[step] = step_metrics

    def latest_market_metrics(self) -> MetricDict:
        if not self.market_metrics:
            return {}
        return self.market_metrics[max(self.market_metrics)]
