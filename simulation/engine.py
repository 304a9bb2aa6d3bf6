from __future__ import annotations

import random
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from agents.actions import ActionRecord
from agents.base_agent import BaseAgent
from agents.heuristic_agent import HEURISTIC_STRATEGIES, HeuristicAgent
from agents.learning_agent import LearningAgent
from agents.logging_utils import create_system_logger
from agents.portfolio import Portfolio
from agents.protocols import AgentInspection, ErrorObserver, PersistenceSink, TickPublisher
from config import CONFIG_MODEL, SimulationConfig
from logger import log
from sim_clock import Clock, SystemClock

from .economic_cycle import EconomicCycle
from .events import FinalizedEvent
from .market import Market
from .random_events import RandomEventGenerator
from .scheduler import EventScheduler, TriggerResult

AGENT_KINDS = ("heuristic", "learning")

# (collaborator, method name, arguments), flushed after a successful tick
PendingWrites = list[tuple[str, str, tuple[Any, ...]]]


def _format_duration(seconds: float) -> str:
    if seconds < 0 or seconds != seconds:  # NaN guard
        return "?"
    seconds_int = int(seconds)
    mins, secs = divmod(seconds_int, 60)
    hours, mins = divmod(mins, 60)
    if hours:
        return f"{hours:d}h{mins:02d}m{secs:02d}s"
    if mins:
        return f"{mins:d}m{secs:02d}s"
    return f"{secs:d}s"


@dataclass
class TickSummary:
    tick: int
    market: dict[str, dict[str, float]]
    active_event_count: int
    cycle_phase: str
    agent_actions: list[ActionRecord] = field(default_factory=list)
    volatility: float = 0.0
    is_paused: bool = False
    finalized_events: list[FinalizedEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick": self.tick,
            "market": self.market,
            "active_event_count": self.active_event_count,
            "cycle_phase": self.cycle_phase,
            "agent_actions": [record.to_dict() for record in self.agent_actions],
            "volatility": round(self.volatility, 6),
            "is_paused": self.is_paused,
            "finalized_events": [record.to_dict() for record in self.finalized_events],
        }


class MarketSimulation:
    """
    One simulation run: market, cycle, agents and events.

    Each `tick` runs, in order: due event steps, every agent's decision in
    insertion order, an optional random event, the market price/drift update
    and the cycle transition. Collaborators (persistence, transport,
    observability) are optional; their failures are logged and never stop a
    tick.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        clock: Clock | None = None,
        persistence: PersistenceSink | None = None,
        transport: TickPublisher | None = None,
        observer: ErrorObserver | None = None,
    ) -> None:
        self.config: SimulationConfig = config or CONFIG_MODEL
        self.clock: Clock = clock or SystemClock()
        self.persistence = persistence
        self.transport = transport
        self.observer = observer

        self.rng = random.Random(self.config.seed)
        self.market = Market(self.config, rng=self._child_rng())
        self.cycle = EconomicCycle(self.config, rng=self._child_rng())
        self.scheduler = EventScheduler(self.config)
        self.random_events = RandomEventGenerator(self.config, rng=self._child_rng())

        self.agents: dict[str, BaseAgent] = {}
        self._agent_counters: dict[str, int] = {kind: 0 for kind in AGENT_KINDS}
        self.tick_count: int = 0
        self.is_paused: bool = False
        self.failed_ticks: int = 0
        self.logger = create_system_logger("MarketSimulation")
        self.last_summary: TickSummary = self._build_summary([], [])

    def _child_rng(self) -> random.Random:
        return random.Random(self.rng.getrandbits(32))

    # --- Agent registry ---
    def add_agent(self, kind: str, name: str, strategy: str | None = None) -> str:
        if kind == "heuristic":
            if strategy is not None and strategy not in HEURISTIC_STRATEGIES:
                raise ValueError(f"Unknown heuristic strategy: {strategy}")
            agent_cls: type[HeuristicAgent] | type[LearningAgent] = HeuristicAgent
            prefix = self.config.HEURISTIC_ID_PREFIX
        elif kind == "learning":
            if strategy is not None and strategy not in self.config.learning.strategies:
                raise ValueError(f"Unknown learning strategy: {strategy}")
            agent_cls = LearningAgent
            prefix = self.config.LEARNING_ID_PREFIX
        else:
            raise ValueError(f"Unknown agent kind: {kind}")

        self._agent_counters[kind] += 1
        agent_id = f"{prefix}{self._agent_counters[kind]}"
        agent = agent_cls(
            agent_id,
            name,
            strategy,
            portfolio=Portfolio.from_config(self.config, self.market.resource_names),
            config=self.config,
            rng=self._child_rng(),
            error_observer=self.observer,
        )
        self.agents[agent_id] = agent
        log(
            f"MarketSimulation: added {kind} agent {agent_id} ({name}, {agent.strategy})",
            level="INFO",
        )
        return agent_id

    def remove_agent(self, agent_id: str) -> bool:
        removed = self.agents.pop(agent_id, None)
        if removed is None:
            return False
        log(f"MarketSimulation: removed agent {agent_id}", level="INFO")
        return True

    def inspect(self, agent_id: str) -> AgentInspection | None:
        agent = self.agents.get(agent_id)
        if agent is None:
            return None
        return agent.inspect(self.market)

    # --- Control ---
    def pause(self) -> None:
        self.is_paused = True
        log("MarketSimulation: paused", level="INFO")

    def resume(self) -> None:
        self.is_paused = False
        log("MarketSimulation: resumed", level="INFO")

    def trigger_event(self, template_id: str) -> TriggerResult:
        return self.scheduler.trigger(template_id, self.clock.now_ms())

    # --- Tick ---
    def tick(self) -> TickSummary:
        """Run one tick and return its summary.

        Persistence writes and action publishes are buffered and only flushed
        once the tick completes. A failing tick emits none of them, keeps the
        tick counter and returns the previous summary. Market, agent and event
        changes made before the failure are not rolled back.
        """
        if self.is_paused:
            summary = replace(self.last_summary, is_paused=True)
            self._safe_call("transport", self._publish_summary, summary)
            return summary

        started = time.perf_counter()
        outbox: PendingWrites = []
        try:
            summary = self._run_tick(self.tick_count + 1, outbox)
        except Exception as exc:
            self.failed_ticks += 1
            self.logger.error(f"Tick {self.tick_count + 1} failed: {exc}")
            if self.observer is not None:
                self._safe_call(
                    "observer",
                    self.observer.record_error,
                    "tick",
                    str(exc),
                    {"tick": self.tick_count + 1, "error": type(exc).__name__},
                )
            return self.last_summary

        self.tick_count = summary.tick
        self.last_summary = summary
        self._flush(outbox)
        self.logger.log_performance("tick", time.perf_counter() - started, {"tick": summary.tick})
        self._safe_call("transport", self._publish_summary, summary)
        return summary

    def _run_tick(self, tick: int, outbox: PendingWrites) -> TickSummary:
        now_ms = self.clock.now_ms()

        finalized = self.scheduler.advance(now_ms, self.market, tick)
        for record in finalized:
            outbox.append(("persistence", "save_event_record", (record,)))

        records: list[ActionRecord] = []
        for agent in list(self.agents.values()):
            record = agent.act(self.market, self.cycle.phase, now_ms, tick)
            records.append(record)
            if record.success and not record.action.is_hold:
                outbox.append(
                    (
                        "persistence",
                        "save_transaction",
                        (agent.unique_id, record.action, record.resulting_price, tick),
                    )
                )
            outbox.append(("transport", "publish_action", (record,)))

        if self.scheduler.active_count == 0:
            random_event = self.random_events.maybe_fire(self.market, tick)
            if random_event is not None:
                finalized.append(random_event)
                outbox.append(("persistence", "save_event_record", (random_event,)))

        self.market.advance_tick(self.cycle.multipliers)
        self.cycle.advance(self.market)
        self.market.assert_invariants()

        if tick % self.config.price_snapshot_interval == 0:
            outbox.append(
                (
                    "persistence",
                    "save_price_snapshot",
                    (self.market.snapshot(), tick, self.cycle.phase.value),
                )
            )

        summary = self._build_summary(records, finalized, tick)
        self.logger.log_system_metric("volatility", round(summary.volatility, 6))
        self.logger.debug(
            f"Tick {tick}: phase={summary.cycle_phase}, events={summary.active_event_count}, "
            f"trades={sum(1 for r in records if r.success and not r.action.is_hold)}"
        )
        return summary

    def _build_summary(
        self,
        records: list[ActionRecord],
        finalized: list[FinalizedEvent],
        tick: int | None = None,
    ) -> TickSummary:
        return TickSummary(
            tick=self.tick_count if tick is None else tick,
            market=self.market.snapshot(),
            active_event_count=self.scheduler.active_count,
            cycle_phase=self.cycle.phase.value,
            agent_actions=records,
            volatility=self.market.volatility(),
            is_paused=self.is_paused,
            finalized_events=finalized,
        )

    def run(self, ticks: int) -> list[TickSummary]:
        started = time.perf_counter()
        summaries = [self.tick() for _ in range(ticks)]
        elapsed = _format_duration(time.perf_counter() - started)
        log(f"MarketSimulation: ran {ticks} ticks in {elapsed}", level="INFO")
        return summaries

    # --- Collaborators ---
    def _publish_summary(self, summary: TickSummary) -> None:
        if self.transport is not None:
            self.transport.publish_tick_summary(summary)

    def _flush(self, outbox: PendingWrites) -> None:
        for source, method, args in outbox:
            target = self.persistence if source == "persistence" else self.transport
            if target is not None:
                self._safe_call(source, getattr(target, method), *args)

    def _safe_call(self, source: str, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
        except Exception as exc:
            self.logger.warning(f"{source} call {getattr(func, '__name__', func)} failed: {exc}")
            if self.observer is not None and source != "observer":
                try:
                    self.observer.record_error(source, str(exc), {"tick": self.tick_count})
                except Exception as nested:
                    self.logger.warning(f"observer failed while reporting: {nested}")
