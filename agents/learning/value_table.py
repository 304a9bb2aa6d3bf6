from __future__ import annotations

from typing import Iterable

from agents.actions import Action

from .state_encoding import StateKey

ValueKey = tuple[StateKey, Action]


def confidence_category(value: float) -> str:
    magnitude = abs(value)
    if magnitude > 10:
        return "very_high"
    if magnitude > 5:
        return "high"
    if magnitude > 1:
        return "medium"
    if magnitude > 0.1:
        return "low"
    return "very_low"


class ValueTable:
    """Tabular action values, defaulting to 0.0 for unseen pairs."""

    def __init__(self) -> None:
        self._values: dict[ValueKey, float] = {}

    def __len__(self) -> int:
        return len(self._values)

    def get(self, state: StateKey, action: Action) -> float:
        return self._values.get((state, action), 0.0)

    def set(self, state: StateKey, action: Action, value: float) -> None:
        self._values[(state, action)] = float(value)

    def max_value(self, state: StateKey, actions: Iterable[Action]) -> float:
        values = [self.get(state, action) for action in actions]
        return max(values) if values else 0.0

    def best_action(self, state: StateKey, actions: list[Action]) -> Action:
        """Highest-valued action; ties resolve to the first in `actions`."""
        best = actions[0]
        best_value = self.get(state, best)
        for action in actions[1:]:
            value = self.get(state, action)
            if value > best_value:
                best, best_value = action, value
        return best

    def update(
        self,
        state: StateKey,
        action: Action,
        reward: float,
        next_max: float,
        alpha: float,
        gamma: float,
    ) -> float:
        current = self.get(state, action)
        updated = current + alpha * (reward + gamma * next_max - current)
        self.set(state, action, updated)
        return updated

    def top_entries(self, limit: int = 10) -> list[dict[str, object]]:
        ranked = sorted(self._values.items(), key=lambda item: abs(item[1]), reverse=True)
        return [
            {
                "state": state.describe(),
                "action": str(action),
                "value": round(value, 4),
                "confidence": confidence_category(value),
            }
            for (state, action), value in ranked[:limit]
        ]
