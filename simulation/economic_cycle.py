from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from config import CONFIG_MODEL, CyclePhaseConfig, SimulationConfig
from logger import log

if TYPE_CHECKING:
    from simulation.market import Market


class CyclePhase(str, Enum):
    EXPANSION = "expansion"
    PEAK = "peak"
    CONTRACTION = "contraction"
    TROUGH = "trough"


@dataclass(frozen=True, slots=True)
class CycleMultipliers:
    """Per-phase scaling of supply drift, demand drift and price sensitivity."""

    supply: float
    demand: float
    price_volatility: float

    @classmethod
    def from_config(cls, phase: CyclePhaseConfig) -> CycleMultipliers:
        return cls(phase.supply_multiplier, phase.demand_multiplier, phase.price_volatility)


_CYCLIC_ORDER = (
    CyclePhase.EXPANSION,
    CyclePhase.PEAK,
    CyclePhase.CONTRACTION,
    CyclePhase.TROUGH,
)


class EconomicCycle:
    """Four-phase business cycle.

    `advance` is called once per tick. When the current phase has lasted its
    duration the cycle moves on and applies the new phase's multipliers to the
    market once.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config: SimulationConfig = config or CONFIG_MODEL
        self.settings = self.config.cycle
        self.rng: random.Random = rng or random.Random()

        self.phase: CyclePhase = CyclePhase(self.settings.initial_phase)
        self.ticks_in_phase: int = 0
        self.phase_duration: int = self._draw_duration(self.phase)
        self.transitions: int = 0

    @property
    def multipliers(self) -> CycleMultipliers:
        return CycleMultipliers.from_config(self.settings.phases[self.phase.value])

    def _draw_duration(self, phase: CyclePhase) -> int:
        if not self.settings.randomize_durations:
            return int(self.settings.fixed_phase_ticks)
        phase_cfg = self.settings.phases[phase.value]
        return self.rng.randint(phase_cfg.min_duration, phase_cfg.max_duration)

    def _next_phase(self) -> CyclePhase:
        if self.settings.randomize_next_phase:
            candidates = self.settings.phases[self.phase.value].next_phases
            if candidates:
                return CyclePhase(self.rng.choice(candidates))
        index = _CYCLIC_ORDER.index(self.phase)
        return _CYCLIC_ORDER[(index + 1) % len(_CYCLIC_ORDER)]

    def advance(self, market: Market) -> bool:
        """Count one tick; return True if the phase changed."""
        self.ticks_in_phase += 1
        if self.ticks_in_phase < self.phase_duration:
            return False

        previous = self.phase
        self.phase = self._next_phase()
        self.ticks_in_phase = 0
        self.phase_duration = self._draw_duration(self.phase)
        self.transitions += 1
        market.apply_cycle_shock(self.multipliers)
        log(
            f"EconomicCycle: {previous.value} -> {self.phase.value} "
            f"(duration {self.phase_duration} ticks)",
            level="INFO",
        )
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "phase": self.phase.value,
            "ticks_in_phase": self.ticks_in_phase,
            "phase_duration": self.phase_duration,
            "transitions": self.transitions,
        }
