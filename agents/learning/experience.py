from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass

from agents.actions import Action

from .state_encoding import StateKey


@dataclass(frozen=True, slots=True)
class Transition:
    state: StateKey
    action: Action
    reward: float
    next_state: StateKey


class ExperienceBuffer:
    """Circular transition memory; the oldest entries are overwritten first."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._items: deque[Transition] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def add(self, transition: Transition) -> None:
        self._items.append(transition)

    def sample(self, rng: random.Random, size: int) -> list[Transition]:
        if not self._items:
            return []
        return rng.sample(list(self._items), min(size, len(self._items)))
