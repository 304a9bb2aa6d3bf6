"""Millisecond clocks for the tick loop.

Every time-dependent decision in the simulation (agent patience, event step
pacing, trigger cooldown) reads "now" from a clock object instead of the wall
clock directly. Production runs use `SystemClock`; batch runs and tests use
`ManualClock`, which only moves when told to.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...


class SystemClock:
    """Monotonic wall clock in milliseconds."""

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)


@dataclass
class ManualClock:
    """A deterministic clock.

    The clock is stateless aside from `current_ms`. Use `advance()` inside the
    batch loop to move it by one tick interval.
    """

    current_ms: int = 0

    def now_ms(self) -> int:
        return self.current_ms

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError("delta_ms must be >= 0")
        self.current_ms += int(delta_ms)
        return self.current_ms
