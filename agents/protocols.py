"""Agent-facing protocols and the collaborator interfaces of the tick engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from typing_extensions import TypedDict

if TYPE_CHECKING:
    from agents.actions import Action, ActionRecord
    from simulation.events import FinalizedEvent
    from simulation.market import MarketEntry
    from simulation.engine import TickSummary


@runtime_checkable
class MarketView(Protocol):
    """Read-only market surface used by agents and portfolios."""

    @property
    def resource_names(self) -> list[str]: ...

    def entry(self, resource: str) -> MarketEntry: ...

    def price(self, resource: str) -> float: ...

    def base_price(self, resource: str) -> float: ...


@runtime_checkable
class Observable(Protocol):
    """Agents that expose the trace of their most recent decision."""

    @property
    def last_decision_trace(self) -> dict[str, Any] | None: ...


@runtime_checkable
class PersistenceSink(Protocol):
    """Durable storage for trades, price snapshots and finished events."""

    def save_transaction(
        self, agent_id: str, action: Action, resulting_price: float | None, tick: int
    ) -> None: ...

    def save_price_snapshot(
        self, market: dict[str, dict[str, float]], tick: int, cycle_phase: str
    ) -> None: ...

    def save_event_record(self, record: FinalizedEvent) -> None: ...


@runtime_checkable
class TickPublisher(Protocol):
    """Push channel towards connected clients."""

    def publish_tick_summary(self, summary: TickSummary) -> None: ...

    def publish_action(self, record: ActionRecord) -> None: ...


@runtime_checkable
class ErrorObserver(Protocol):
    """Receives recoverable failures for monitoring."""

    def record_error(self, source: str, message: str, context: dict[str, Any]) -> None: ...


class LearningStatistics(TypedDict):
    """Running reward statistics of a learning agent."""

    total_reward: float
    average_reward: float
    best_reward: float | None
    worst_reward: float | None
    episodes: int
    exploration_count: int
    exploitation_count: int
    recent_average_reward: float


class AgentInspection(TypedDict):
    """Snapshot returned by `MarketSimulation.inspect`."""

    agent_id: str
    name: str
    kind: str
    strategy: str
    portfolio: dict[str, object]
    net_worth: float
    epsilon: float | None
    value_table_size: int | None
    value_table_sample: list[dict[str, object]] | None
    last_action: dict[str, Any] | None
    last_reward: float | None
    statistics: dict[str, Any]


class TriggerOutcome(TypedDict):
    """Plain-dict form of an event trigger result."""

    ok: bool
    eta_ms: int
    reason: str | None
    event_id: str | None
