from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from config import CONFIG_MODEL, SimulationConfig

from .actions import Action, ActionRecord
from .logging_utils import create_agent_logger
from .portfolio import Portfolio

if TYPE_CHECKING:
    from agents.protocols import AgentInspection, ErrorObserver
    from simulation.economic_cycle import CyclePhase
    from simulation.market import Market


class BaseAgent(ABC):
    """Common trading loop shared by heuristic and learning agents.

    Subclasses implement `decide`; the base class executes the chosen action
    against the market and turns failures inside `decide` into a Hold.
    """

    kind: str = "base"

    def __init__(
        self,
        unique_id: str,
        name: str,
        strategy: str,
        portfolio: Portfolio | None = None,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
        error_observer: ErrorObserver | None = None,
    ) -> None:
        self.unique_id = unique_id
        self.name = name
        self.strategy = strategy
        self.config: SimulationConfig = config or CONFIG_MODEL
        self.portfolio: Portfolio = portfolio or Portfolio.from_config(self.config)
        self.rng: random.Random = rng or random.Random()
        self.error_observer = error_observer
        self.logger = create_agent_logger(unique_id, type(self).__name__)

        self.last_action: Action | None = None
        self.last_reward: float | None = None
        self.trade_count: int = 0
        self.failed_trade_count: int = 0
        self._last_reasoning: str = ""

    @abstractmethod
    def decide(self, market: Market, cycle_phase: CyclePhase, now_ms: int) -> Action:
        """Choose the next action given the current market view."""

    def after_trade(self, action: Action, success: bool, market: Market, now_ms: int) -> None:
        """Hook called once the market has accepted or rejected the action."""

    def on_decision_error(self, exc: Exception) -> None:
        """Hook called when `decide` raised; the tick continues with a Hold."""

    def current_confidence(self) -> float | None:
        return None

    def act(self, market: Market, cycle_phase: CyclePhase, now_ms: int, tick: int) -> ActionRecord:
        try:
            action = self.decide(market, cycle_phase, now_ms)
        except Exception as exc:
            self.logger.error(
                f"Decision failed at tick {tick}: {exc}", {"error": type(exc).__name__}
            )
            if self.error_observer is not None:
                self.error_observer.record_error(
                    f"agent:{self.unique_id}", str(exc), {"tick": tick, "agent": self.name}
                )
            self.on_decision_error(exc)
            action = Action.hold()
            self._last_reasoning = f"decision error: {type(exc).__name__}"

        success = market.apply_trade(self.portfolio, action)
        if not action.is_hold:
            if success:
                self.trade_count += 1
                self.logger.log_trade(str(action), market.price(action.resource or ""), success)
            else:
                self.failed_trade_count += 1
                self.logger.debug(f"Trade rejected: {action}")
        self.after_trade(action, success, market, now_ms)
        self.last_action = action

        resulting_price = None
        if action.resource is not None:
            resulting_price = market.price(action.resource)
        return ActionRecord(
            agent_id=self.unique_id,
            agent_name=self.name,
            agent_kind=self.kind,
            tick=tick,
            action=action,
            success=success,
            resulting_price=resulting_price,
            reward=self.last_reward,
            confidence=self.current_confidence(),
            reasoning=self._last_reasoning,
        )

    def net_worth(self, market: Market) -> float:
        return self.portfolio.net_worth(market)

    def statistics(self) -> dict[str, Any]:
        return {"trades": self.trade_count, "failed_trades": self.failed_trade_count}

    def inspect(self, market: Market) -> AgentInspection:
        return {
            "agent_id": self.unique_id,
            "name": self.name,
            "kind": self.kind,
            "strategy": self.strategy,
            "portfolio": self.portfolio.to_dict(),
            "net_worth": round(self.net_worth(market), 2),
            "epsilon": None,
            "value_table_size": None,
            "value_table_sample": None,
            "last_action": self.last_action.to_dict() if self.last_action else None,
            "last_reward": self.last_reward,
            "statistics": self.statistics(),
        }
