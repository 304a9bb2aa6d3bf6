"""Trading actions and the records produced when agents execute them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionKind(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True, slots=True)
class Action:
    """A single trading intent.

    Actions are hashable and compare by value, so the action itself serves as
    the action half of a value-table key.
    """

    kind: ActionKind
    resource: str | None = None
    quantity: int = 0

    @classmethod
    def buy(cls, resource: str, quantity: int) -> Action:
        return cls(ActionKind.BUY, resource, int(quantity))

    @classmethod
    def sell(cls, resource: str, quantity: int) -> Action:
        return cls(ActionKind.SELL, resource, int(quantity))

    @classmethod
    def hold(cls) -> Action:
        return cls(ActionKind.HOLD)

    @property
    def is_hold(self) -> bool:
        return self.kind is ActionKind.HOLD

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "resource": self.resource, "quantity": self.quantity}

    def __str__(self) -> str:
        if self.is_hold:
            return "hold"
        return f"{self.kind.value} {self.quantity} {self.resource}"


@dataclass(slots=True)
class ActionRecord:
    """Outcome of one agent decision within a tick."""

    agent_id: str
    agent_name: str
    agent_kind: str
    tick: int
    action: Action
    success: bool
    resulting_price: float | None = None
    reward: float | None = None
    confidence: float | None = None
    reasoning: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "agent_kind": self.agent_kind,
            "tick": self.tick,
            "action": self.action.to_dict(),
            "success": self.success,
            "resulting_price": self.resulting_price,
            "reward": self.reward,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }
        if self.extra:
            payload["extra"] = dict(self.extra)
        return payload
