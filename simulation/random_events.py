"""Instantaneous random market shocks (drought, harvest, blackout, ...)."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from config import CONFIG_MODEL, SimulationConfig
from logger import log

from .events import FinalizedEvent

if TYPE_CHECKING:
    from simulation.market import Market


class RandomEventGenerator:
    def __init__(
        self,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config: SimulationConfig = config or CONFIG_MODEL
        self.settings = self.config.random_events
        self.rng: random.Random = rng or random.Random()
        self.fired: int = 0

    @property
    def enabled(self) -> bool:
        return self.settings.enabled and bool(self.settings.templates)

    def maybe_fire(self, market: Market, tick: int) -> FinalizedEvent | None:
        """Pick one candidate per tick and apply it with its probability."""
        if not self.enabled:
            return None
        event_id = self.rng.choice(sorted(self.settings.templates))
        template = self.settings.templates[event_id]
        if self.rng.random() >= template.probability:
            return None

        market.apply_event_increment(
            template.resource, template.supply_effect, template.demand_effect
        )
        self.fired += 1
        log(f"RandomEvent: {template.name} hits {template.resource} at tick {tick}", level="INFO")
        return FinalizedEvent(
            event_id=f"{event_id}_{tick}",
            template_id=event_id,
            name=template.name,
            target_resources=(template.resource,),
            accumulated_supply_effect=template.supply_effect,
            accumulated_demand_effect=template.demand_effect,
            total_steps=1,
            duration_ms=0,
            final_market={template.resource: market.entry(template.resource).to_dict()},
            rarity="common",
            lasting_ticks=0,
            finished_tick=tick,
        )
