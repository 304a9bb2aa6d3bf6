"""Progressive macro events.

An event spreads its total effect over `total_steps` increments. Step `n`
brings the cumulative effect to `effect * peak * easing(n / total)`, and each
increment is the difference to what has already been applied, so the
lifetime total equals `effect * peak` for every easing curve.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from config import EasingKind, EventTemplateConfig

if TYPE_CHECKING:
    from simulation.market import Market


def _logistic(t: float, k: float) -> float:
    def raw(x: float) -> float:
        return 1.0 / (1.0 + math.exp(-k * (x - 0.5)))

    low, high = raw(0.0), raw(1.0)
    return (raw(t) - low) / (high - low)


def _piecewise(t: float) -> float:
    # research, breakthrough, rollout
    if t < 0.6:
        return 0.1 * t / 0.6
    if t < 0.7:
        return 0.1 + 0.5 * (t - 0.6) / 0.1
    return 0.6 + 0.4 * (t - 0.7) / 0.3


def easing(kind: EasingKind, t: float, parameter: float | None = None) -> float:
    """Map progress `t` in [0, 1] onto [0, 1] with easing(1) == 1."""
    t = min(max(t, 0.0), 1.0)
    match kind:
        case EasingKind.LINEAR:
            value = t
        case EasingKind.POWER:
            value = t ** (parameter if parameter is not None else 2.0)
        case EasingKind.LOGISTIC:
            value = _logistic(t, parameter if parameter is not None else 10.0)
        case EasingKind.EXPONENTIAL:
            k = parameter if parameter is not None else 3.0
            value = (math.exp(k * t) - 1.0) / (math.exp(k) - 1.0)
        case EasingKind.LOGARITHMIC:
            value = math.log(1.0 + 9.0 * t) / math.log(10.0)
        case EasingKind.SATURATING:
            k = parameter if parameter is not None else 4.0
            value = (1.0 - math.exp(-k * t)) / (1.0 - math.exp(-k))
        case EasingKind.ACCELERATING:
            a = parameter if parameter is not None else 0.3
            value = (t + a * t**3) / (1.0 + a)
        case EasingKind.PIECEWISE:
            value = _piecewise(t)
        case EasingKind.STEPPED:
            stages = int(parameter) if parameter else 4
            value = math.ceil(t * stages) / stages
        case EasingKind.ESCALATION:
            value = t * (0.3 + 0.7 * abs(math.sin(1.5 * math.pi * t)))
        case _:
            raise ValueError(f"Unknown easing kind: {kind}")
    return min(max(value, 0.0), 1.0)


@dataclass(frozen=True, slots=True)
class FinalizedEvent:
    """Durable record of a completed event."""

    event_id: str
    template_id: str
    name: str
    target_resources: tuple[str, ...]
    accumulated_supply_effect: float
    accumulated_demand_effect: float
    total_steps: int
    duration_ms: int
    final_market: dict[str, dict[str, float]]
    rarity: str
    lasting_ticks: int
    finished_tick: int

    @property
    def severity(self) -> float:
        return abs(self.accumulated_supply_effect) + abs(self.accumulated_demand_effect)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "template_id": self.template_id,
            "name": self.name,
            "target_resources": list(self.target_resources),
            "accumulated_supply_effect": self.accumulated_supply_effect,
            "accumulated_demand_effect": self.accumulated_demand_effect,
            "total_steps": self.total_steps,
            "duration_ms": self.duration_ms,
            "final_market": self.final_market,
            "severity": round(self.severity, 6),
            "rarity": self.rarity,
            "lasting_ticks": self.lasting_ticks,
            "finished_tick": self.finished_tick,
        }


@dataclass
class ProgressiveEvent:
    event_id: str
    template_id: str
    template: EventTemplateConfig
    started_at_ms: int
    last_step_at_ms: int = field(default=-1)
    current_step: int = 0
    accumulated_supply_effect: float = 0.0
    accumulated_demand_effect: float = 0.0

    def __post_init__(self) -> None:
        if self.last_step_at_ms < 0:
            self.last_step_at_ms = self.started_at_ms

    @classmethod
    def from_template(
        cls, event_id: str, template_id: str, template: EventTemplateConfig, now_ms: int
    ) -> ProgressiveEvent:
        return cls(
            event_id=event_id, template_id=template_id, template=template, started_at_ms=now_ms
        )

    @property
    def total_steps(self) -> int:
        return self.template.total_steps

    @property
    def step_duration_ms(self) -> int:
        return self.template.step_duration_ms

    @property
    def peak_intensity(self) -> float:
        return self.template.peak_intensity

    @property
    def supply_effect(self) -> float:
        return self.template.supply_effect

    @property
    def demand_effect(self) -> float:
        return self.template.demand_effect

    @property
    def easing(self) -> EasingKind:
        return self.template.easing

    @property
    def is_complete(self) -> bool:
        return self.current_step >= self.total_steps

    @property
    def progress(self) -> float:
        return self.current_step / self.total_steps

    @property
    def estimated_duration_ms(self) -> int:
        return self.total_steps * self.step_duration_ms

    def is_due(self, now_ms: int) -> bool:
        return not self.is_complete and now_ms - self.last_step_at_ms >= self.step_duration_ms

    def step(self, market: Market, now_ms: int) -> tuple[float, float]:
        """Apply the next increment to every target resource.

        Returns the (supply, demand) increments applied.
        """
        ratio = easing(
            self.easing,
            (self.current_step + 1) / self.total_steps,
            self.template.easing_parameter,
        )
        intensity = ratio * self.peak_intensity
        d_supply = self.supply_effect * intensity - self.accumulated_supply_effect
        d_demand = self.demand_effect * intensity - self.accumulated_demand_effect

        for resource in self.template.target_resources:
            market.apply_event_increment(resource, d_supply, d_demand)

        self.accumulated_supply_effect += d_supply
        self.accumulated_demand_effect += d_demand
        self.current_step += 1
        self.last_step_at_ms = now_ms
        return d_supply, d_demand

    def finalize(self, market: Market, tick: int) -> FinalizedEvent:
        targets = tuple(self.template.target_resources)
        return FinalizedEvent(
            event_id=self.event_id,
            template_id=self.template_id,
            name=self.template.name or self.template_id,
            target_resources=targets,
            accumulated_supply_effect=self.accumulated_supply_effect,
            accumulated_demand_effect=self.accumulated_demand_effect,
            total_steps=self.current_step,
            duration_ms=self.last_step_at_ms - self.started_at_ms,
            final_market={r: market.entry(r).to_dict() for r in targets if r in market.entries},
            rarity=self.template.rarity,
            lasting_ticks=self.template.lasting_ticks,
            finished_tick=tick,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "template_id": self.template_id,
            "name": self.template.name or self.template_id,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "progress": round(self.progress, 4),
            "accumulated_supply_effect": round(self.accumulated_supply_effect, 6),
            "accumulated_demand_effect": round(self.accumulated_demand_effect, 6),
            "easing": self.easing.value,
        }
