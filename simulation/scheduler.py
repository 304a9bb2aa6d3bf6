from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agents.logging_utils import create_system_logger
from agents.protocols import TriggerOutcome
from config import CONFIG_MODEL, SimulationConfig

from .events import FinalizedEvent, ProgressiveEvent

if TYPE_CHECKING:
    from simulation.market import Market


@dataclass(frozen=True, slots=True)
class TriggerResult:
    ok: bool
    eta_ms: int = 0
    reason: str | None = None
    event_id: str | None = None

    def to_dict(self) -> TriggerOutcome:
        return {
            "ok": self.ok,
            "eta_ms": self.eta_ms,
            "reason": self.reason,
            "event_id": self.event_id,
        }


class EventScheduler:
    """
    Owns the active progressive events and the trigger cooldown.

    Triggers are rejected while the cooldown runs (never queued). `advance`
    moves every due event by exactly one step and returns the records of
    events that finished.
    """

    def __init__(self, config: SimulationConfig | None = None) -> None:
        self.config: SimulationConfig = config or CONFIG_MODEL
        self.settings = self.config.events
        self.active: dict[str, ProgressiveEvent] = {}
        self.recent_events: deque[FinalizedEvent] = deque(
            maxlen=self.settings.recent_events_kept
        )
        self.last_trigger_ms: int | None = None
        self._ids = itertools.count(1)
        self.logger = create_system_logger("EventScheduler")

    @property
    def active_count(self) -> int:
        return len(self.active)

    def cooldown_remaining(self, now_ms: int) -> int:
        if self.last_trigger_ms is None:
            return 0
        return max(0, self.settings.cooldown_ms - (now_ms - self.last_trigger_ms))

    def trigger(self, template_id: str, now_ms: int) -> TriggerResult:
        template = self.settings.templates.get(template_id)
        if template is None:
            self.logger.warning(f"Rejected unknown template {template_id!r}")
            return TriggerResult(ok=False, reason="unknown_template")

        remaining = self.cooldown_remaining(now_ms)
        if remaining > 0:
            self.logger.info(f"Rejected {template_id}: cooldown {remaining}ms remaining")
            return TriggerResult(ok=False, eta_ms=remaining, reason="cooldown")

        event_id = f"{template_id}_{next(self._ids)}"
        event = ProgressiveEvent.from_template(event_id, template_id, template, now_ms)
        self.active[event_id] = event
        self.last_trigger_ms = now_ms
        self.logger.log_event(
            "event_triggered",
            {
                "event_id": event_id,
                "template_id": template_id,
                "total_steps": event.total_steps,
                "estimated_duration_ms": event.estimated_duration_ms,
            },
        )
        return TriggerResult(ok=True, eta_ms=event.estimated_duration_ms, event_id=event_id)

    def advance(self, now_ms: int, market: Market, tick: int) -> list[FinalizedEvent]:
        finalized: list[FinalizedEvent] = []
        for event_id, event in list(self.active.items()):
            if not event.is_due(now_ms):
                continue
            try:
                d_supply, d_demand = event.step(market, now_ms)
            except Exception as exc:
                del self.active[event_id]
                self.logger.error(f"Dropped {event_id} after failed step: {exc}")
                continue
            self.logger.debug(
                f"{event_id} step {event.current_step}/{event.total_steps}: "
                f"supply {d_supply:+.4f}, demand {d_demand:+.4f}"
            )
            if event.is_complete:
                record = event.finalize(market, tick)
                del self.active[event_id]
                self.recent_events.append(record)
                finalized.append(record)
                self.logger.log_event("event_finalized", record.to_dict())
        return finalized

    def to_dict(self) -> dict[str, object]:
        return {
            "active": [event.to_dict() for event in self.active.values()],
            "recent": [record.to_dict() for record in self.recent_events],
            "last_trigger_ms": self.last_trigger_ms,
        }
