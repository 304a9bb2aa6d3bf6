from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Literal, cast

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    field_validator,
    model_validator,
)

output_dir = "output/"


class EasingKind(str, Enum):
    """Closed set of progress curves a progressive event can follow."""

    LINEAR = "linear"
    POWER = "power"
    LOGISTIC = "logistic"
    EXPONENTIAL = "exponential"
    LOGARITHMIC = "logarithmic"
    SATURATING = "saturating"
    ACCELERATING = "accelerating"
    PIECEWISE = "piecewise"
    STEPPED = "stepped"
    ESCALATION = "escalation"


ConfigScalar = bool | int | float | str | None
ConfigValue = ConfigScalar | list["ConfigValue"] | dict[str, "ConfigValue"]


def _coerce_value(value: object) -> ConfigValue:
    if isinstance(value, Enum):
        return cast(ConfigValue, value.value)
    if isinstance(value, (bool, int, float, str)) or value is None:
        return value
    if isinstance(value, list):
        return [_coerce_value(item) for item in value]
    if isinstance(value, tuple):
        return [_coerce_value(item) for item in value]
    if isinstance(value, Mapping):
        coerced: dict[str, ConfigValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                msg = "CONFIG keys must be strings"
                raise TypeError(msg)
            coerced[key] = _coerce_value(item)
        return coerced
    msg = f"Unsupported CONFIG value type: {type(value)!r}"
    raise TypeError(msg)


def _coerce_config_dict(data: Mapping[str, object]) -> dict[str, ConfigValue]:
    return {key: _coerce_value(value) for key, value in data.items()}


class BaseConfigModel(BaseModel):
    model_config = ConfigDict(validate_default=True, frozen=False)


# --- Market -------------------------------------------------------------------


class ResourceConfig(BaseConfigModel):
    name: str = Field(min_length=1)
    base_price: float = Field(gt=0)


class MarketEntryConfig(BaseConfigModel):
    price: float = Field(gt=0)
    supply: int = Field(ge=0)
    demand: int = Field(ge=0)


def _default_resources() -> list[dict[str, float | str]]:
    return [
        {"name": "water", "base_price": 10},
        {"name": "food", "base_price": 15},
        {"name": "energy", "base_price": 20},
        {"name": "materials", "base_price": 25},
    ]


def _default_initial_market() -> dict[str, dict[str, float]]:
    return {
        "water": {"price": 10, "supply": 1000, "demand": 800},
        "food": {"price": 15, "supply": 800, "demand": 900},
        "energy": {"price": 20, "supply": 600, "demand": 700},
        "materials": {"price": 25, "supply": 500, "demand": 600},
    }


class MarketConfig(BaseConfigModel):
    min_price: float = Field(1.0, gt=0)
    max_price: float = Field(1000.0, gt=0)
    min_supply: int = Field(50, gt=0)
    max_supply: int = Field(5000, gt=0)
    min_demand: int = Field(50, gt=0)
    max_demand: int = Field(5000, gt=0)
    price_sensitivity: float = Field(0.08, ge=0)
    price_noise: float = Field(0.03, ge=0, le=0.05)
    supply_drift: int = Field(15, ge=0)
    demand_drift: int = Field(17, ge=0)
    trade_demand_impact: float = Field(0.1, ge=0)
    price_history_length: PositiveInt = 100
    volatility_window: PositiveInt = 5

    @model_validator(mode="after")
    def _validate_bounds(self) -> MarketConfig:
        if self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        if self.min_supply > self.max_supply:
            raise ValueError("min_supply must not exceed max_supply")
        if self.min_demand > self.max_demand:
            raise ValueError("min_demand must not exceed max_demand")
        return self


# --- Economic cycle -----------------------------------------------------------


class CyclePhaseConfig(BaseConfigModel):
    supply_multiplier: float = Field(gt=0)
    demand_multiplier: float = Field(gt=0)
    price_volatility: float = Field(gt=0)
    min_duration: PositiveInt
    max_duration: PositiveInt
    next_phases: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_duration(self) -> CyclePhaseConfig:
        if self.min_duration > self.max_duration:
            raise ValueError("min_duration must not exceed max_duration")
        return self


def _default_cycle_phases() -> dict[str, dict[str, object]]:
    return {
        "expansion": {
            "supply_multiplier": 1.08,
            "demand_multiplier": 1.12,
            "price_volatility": 0.8,
            "min_duration": 8,
            "max_duration": 15,
            "next_phases": ["peak"],
        },
        "peak": {
            "supply_multiplier": 1.02,
            "demand_multiplier": 1.18,
            "price_volatility": 1.2,
            "min_duration": 3,
            "max_duration": 6,
            "next_phases": ["contraction"],
        },
        "contraction": {
            "supply_multiplier": 0.92,
            "demand_multiplier": 0.88,
            "price_volatility": 1.3,
            "min_duration": 5,
            "max_duration": 12,
            "next_phases": ["trough"],
        },
        "trough": {
            "supply_multiplier": 0.85,
            "demand_multiplier": 0.82,
            "price_volatility": 1.5,
            "min_duration": 2,
            "max_duration": 5,
            "next_phases": ["expansion"],
        },
    }


CYCLE_PHASE_NAMES = ("expansion", "peak", "contraction", "trough")


class CycleConfig(BaseConfigModel):
    initial_phase: Literal["expansion", "peak", "contraction", "trough"] = "expansion"
    fixed_phase_ticks: PositiveInt = 15
    randomize_durations: bool = False
    randomize_next_phase: bool = False
    phases: dict[str, CyclePhaseConfig] = Field(default_factory=_default_cycle_phases)

    @field_validator("phases")
    @classmethod
    def _validate_phases(cls, value: dict[str, CyclePhaseConfig]) -> dict[str, CyclePhaseConfig]:
        missing = [name for name in CYCLE_PHASE_NAMES if name not in value]
        if missing:
            raise ValueError(f"Cycle phases missing: {', '.join(missing)}")
        for name, phase in value.items():
            for successor in phase.next_phases:
                if successor not in CYCLE_PHASE_NAMES:
                    raise ValueError(f"Unknown successor {successor!r} for phase {name!r}")
        return value


# --- Agents -------------------------------------------------------------------


def _default_holdings() -> dict[str, int]:
    return {"water": 50, "food": 30, "energy": 20, "materials": 10}


class PortfolioConfig(BaseConfigModel):
    starting_cash: float = Field(1000.0, ge=0)
    starting_holdings: dict[str, int] = Field(default_factory=_default_holdings)

    @field_validator("starting_holdings")
    @classmethod
    def _validate_holdings(cls, value: dict[str, int]) -> dict[str, int]:
        if any(qty < 0 for qty in value.values()):
            raise ValueError("starting holdings must be >= 0")
        return value


def _default_quantity_multipliers() -> dict[str, float]:
    return {"aggressive": 1.5, "conservative": 0.5, "balanced": 1.0, "contrarian": 1.0}


class HeuristicConfig(BaseConfigModel):
    action_threshold: float = Field(0.15, ge=0.1, le=0.2)
    price_window: PositiveInt = 20
    min_patience_ms: int = Field(10_000, ge=0)
    max_patience_ms: int = Field(40_000, ge=0)
    initial_confidence: float = Field(0.5, ge=0.1, le=0.9)
    confidence_step: float = Field(0.01, ge=0)
    trend_weight: float = Field(0.3, ge=0)
    contrarian_weight: float = Field(0.4, ge=0)
    ratio_weight: float = Field(0.3, ge=0)
    sentiment_weight: float = Field(0.2, ge=0)
    bullish_ratio: float = Field(1.2, gt=0)
    bearish_ratio: float = Field(0.8, gt=0)
    min_base_quantity: PositiveInt = 5
    max_base_quantity: PositiveInt = 24
    quantity_multipliers: dict[str, float] = Field(default_factory=_default_quantity_multipliers)

    @model_validator(mode="after")
    def _validate_ranges(self) -> HeuristicConfig:
        if self.min_patience_ms > self.max_patience_ms:
            raise ValueError("min_patience_ms must not exceed max_patience_ms")
        if self.min_base_quantity > self.max_base_quantity:
            raise ValueError("min_base_quantity must not exceed max_base_quantity")
        return self


class StrategyConfig(BaseConfigModel):
    alpha: float = Field(gt=0, le=1)
    gamma: float = Field(ge=0, lt=1)
    epsilon: float = Field(ge=0, le=1)


def _default_strategies() -> dict[str, dict[str, float]]:
    return {
        "aggressive": {"alpha": 0.15, "gamma": 0.9, "epsilon": 0.4},
        "conservative": {"alpha": 0.05, "gamma": 0.98, "epsilon": 0.2},
        "adaptive": {"alpha": 0.1, "gamma": 0.95, "epsilon": 0.3},
        "contrarian": {"alpha": 0.08, "gamma": 0.92, "epsilon": 0.25},
    }


def _default_trade_quantities() -> list[int]:
    return [1, 5, 10, 15, 20, 25]


class RewardConfig(BaseConfigModel):
    networth_scale: float = 0.01
    hold_penalty: float = 0.1
    wasted_action_penalty: float = 1.0
    aggressive_quantity_bonus: float = 0.1
    conservative_gain_rate: float = 0.02
    conservative_gain_cap: float = 5.0
    conservative_loss_rate: float = 0.02
    contrarian_bonus: float = 2.0
    contrarian_low_ratio: float = 0.8
    contrarian_high_ratio: float = 1.2
    personality_weight: float = Field(0.1, ge=0)


class LearningConfig(BaseConfigModel):
    epsilon_decay: float = Field(0.995, gt=0, le=1)
    epsilon_min: float = Field(0.05, ge=0, le=1)
    trade_quantities: list[int] = Field(default_factory=_default_trade_quantities)
    strategies: dict[str, StrategyConfig] = Field(default_factory=_default_strategies)
    default_strategy: str = "adaptive"
    bootstrap_full_space_limit: PositiveInt = 64
    bootstrap_sample_size: PositiveInt = 16
    experience_buffer_size: PositiveInt = 10_000
    replay_interval: int = Field(10, ge=0)
    replay_batch_size: PositiveInt = 32
    decision_history_size: PositiveInt = 100
    recent_rewards_window: PositiveInt = 100
    rewards: RewardConfig = Field(default_factory=RewardConfig)

    @field_validator("trade_quantities")
    @classmethod
    def _validate_quantities(cls, value: list[int]) -> list[int]:
        if not value or any(q <= 0 for q in value):
            raise ValueError("trade_quantities must be a non-empty list of positive integers")
        return value

    @model_validator(mode="after")
    def _validate_default_strategy(self) -> LearningConfig:
        if self.default_strategy not in self.strategies:
            raise ValueError(f"default_strategy {self.default_strategy!r} is not configured")
        return self


# --- Events -------------------------------------------------------------------


MAX_EASING_STEEPNESS = 100.0


class EventTemplateConfig(BaseConfigModel):
    name: str = ""
    description: str = ""
    target_resources: list[str] = Field(min_length=1)
    total_steps: PositiveInt
    step_duration_ms: PositiveInt
    peak_intensity: float = Field(gt=0)
    supply_effect: float = Field(ge=-1)
    demand_effect: float = Field(ge=-1)
    easing: EasingKind = EasingKind.LINEAR
    easing_parameter: float | None = None
    rarity: Literal["common", "rare", "epic", "legendary"] = "rare"
    lasting_ticks: int = Field(10, ge=0)

    @model_validator(mode="after")
    def _validate_easing_parameter(self) -> EventTemplateConfig:
        value = self.easing_parameter
        if value is None:
            return self
        match self.easing:
            case EasingKind.LOGISTIC | EasingKind.EXPONENTIAL | EasingKind.SATURATING:
                if not 0 < value <= MAX_EASING_STEEPNESS:
                    raise ValueError(
                        f"{self.easing.value} easing needs a parameter in "
                        f"(0, {MAX_EASING_STEEPNESS}]"
                    )
            case EasingKind.POWER | EasingKind.ACCELERATING:
                if value <= 0:
                    raise ValueError(f"{self.easing.value} easing needs a positive parameter")
            case EasingKind.STEPPED:
                if value < 1 or value != int(value):
                    raise ValueError("stepped easing needs a whole number of stages >= 1")
        return self


def _default_event_templates() -> dict[str, dict[str, object]]:
    everything = ["water", "food", "energy", "materials"]
    return {
        "market_crash": {
            "name": "Global Financial Crisis",
            "description": "Sudden market collapse spreading across every resource",
            "target_resources": everything,
            "total_steps": 20,
            "step_duration_ms": 15_000,
            "peak_intensity": 0.8,
            "supply_effect": -0.4,
            "demand_effect": -0.3,
            "easing": "power",
            "easing_parameter": 1.5,
            "rarity": "legendary",
            "lasting_ticks": 10,
        },
        "tech_revolution": {
            "name": "Technological Revolution",
            "description": "Energy efficiency improves along an S-curve",
            "target_resources": ["energy"],
            "total_steps": 15,
            "step_duration_ms": 20_000,
            "peak_intensity": 0.9,
            "supply_effect": 0.6,
            "demand_effect": -0.2,
            "easing": "logistic",
            "easing_parameter": 10.0,
            "rarity": "epic",
            "lasting_ticks": 12,
        },
        "climate_disaster": {
            "name": "Extreme Climate Disaster",
            "description": "Critical infrastructure degrades at an accelerating pace",
            "target_resources": ["water", "food"],
            "total_steps": 25,
            "step_duration_ms": 12_000,
            "peak_intensity": 0.95,
            "supply_effect": -0.5,
            "demand_effect": 0.4,
            "easing": "accelerating",
            "easing_parameter": 0.3,
            "rarity": "rare",
            "lasting_ticks": 8,
        },
        "gold_rush": {
            "name": "Resource Rush",
            "description": "A massive discovery floods the materials market",
            "target_resources": ["materials"],
            "total_steps": 18,
            "step_duration_ms": 16_000,
            "peak_intensity": 0.7,
            "supply_effect": 0.8,
            "demand_effect": 0.2,
            "easing": "logarithmic",
            "rarity": "epic",
            "lasting_ticks": 15,
        },
        "pandemic_lockdown": {
            "name": "Global Lockdown",
            "description": "Staged restrictions gradually freeze trade",
            "target_resources": everything,
            "total_steps": 30,
            "step_duration_ms": 10_000,
            "peak_intensity": 0.85,
            "supply_effect": -0.3,
            "demand_effect": -0.4,
            "easing": "stepped",
            "easing_parameter": 4,
            "rarity": "legendary",
            "lasting_ticks": 20,
        },
        "ai_automation": {
            "name": "AI Automation",
            "description": "Automation spreads through key sectors",
            "target_resources": ["materials", "energy"],
            "total_steps": 22,
            "step_duration_ms": 14_000,
            "peak_intensity": 0.6,
            "supply_effect": 0.4,
            "demand_effect": -0.3,
            "easing": "power",
            "easing_parameter": 2.0,
            "rarity": "epic",
            "lasting_ticks": 18,
        },
        "space_mining": {
            "name": "Space Mining",
            "description": "Asteroid mining slowly reshapes the materials supply",
            "target_resources": ["materials"],
            "total_steps": 40,
            "step_duration_ms": 8_000,
            "peak_intensity": 1.0,
            "supply_effect": 1.2,
            "demand_effect": 0.1,
            "easing": "exponential",
            "easing_parameter": 3.0,
            "rarity": "legendary",
            "lasting_ticks": 25,
        },
        "fusion_breakthrough": {
            "name": "Fusion Power",
            "description": "Research, a sudden breakthrough, then gradual rollout",
            "target_resources": ["energy"],
            "total_steps": 35,
            "step_duration_ms": 9_000,
            "peak_intensity": 0.9,
            "supply_effect": 0.9,
            "demand_effect": -0.5,
            "easing": "piecewise",
            "rarity": "legendary",
            "lasting_ticks": 30,
        },
        "bioengineering_boost": {
            "name": "Biotech Revolution",
            "description": "Engineered crops multiply food output until saturation",
            "target_resources": ["food"],
            "total_steps": 28,
            "step_duration_ms": 11_000,
            "peak_intensity": 0.8,
            "supply_effect": 0.7,
            "demand_effect": -0.1,
            "easing": "saturating",
            "easing_parameter": 4.0,
            "rarity": "epic",
            "lasting_ticks": 22,
        },
        "water_wars": {
            "name": "Water Wars",
            "description": "Geopolitical disputes over water escalate in waves",
            "target_resources": ["water"],
            "total_steps": 20,
            "step_duration_ms": 15_000,
            "peak_intensity": 0.95,
            "supply_effect": -0.6,
            "demand_effect": 0.8,
            "easing": "escalation",
            "rarity": "rare",
            "lasting_ticks": 12,
        },
    }


class EventConfig(BaseConfigModel):
    cooldown_ms: int = Field(45_000, ge=0)
    recent_events_kept: PositiveInt = 10
    templates: dict[str, EventTemplateConfig] = Field(default_factory=_default_event_templates)


class RandomEventTemplate(BaseConfigModel):
    name: str
    resource: str
    supply_effect: float = Field(ge=-1)
    demand_effect: float = Field(ge=-1)
    probability: float = Field(ge=0, le=1)


def _default_random_events() -> dict[str, dict[str, object]]:
    return {
        "drought": {
            "name": "Severe Drought",
            "resource": "water",
            "supply_effect": -0.25,
            "demand_effect": 0.2,
            "probability": 0.15,
        },
        "harvest": {
            "name": "Exceptional Harvest",
            "resource": "food",
            "supply_effect": 0.35,
            "demand_effect": -0.1,
            "probability": 0.2,
        },
        "blackout": {
            "name": "Energy Crisis",
            "resource": "energy",
            "supply_effect": -0.2,
            "demand_effect": 0.25,
            "probability": 0.12,
        },
        "discovery": {
            "name": "New Deposit",
            "resource": "materials",
            "supply_effect": 0.3,
            "demand_effect": 0.05,
            "probability": 0.15,
        },
        "innovation": {
            "name": "Technological Advance",
            "resource": "energy",
            "supply_effect": 0.2,
            "demand_effect": -0.15,
            "probability": 0.1,
        },
    }


class RandomEventConfig(BaseConfigModel):
    enabled: bool = False
    templates: dict[str, RandomEventTemplate] = Field(default_factory=_default_random_events)


# --- Run ----------------------------------------------------------------------


class InitialAgent(BaseConfigModel):
    kind: Literal["heuristic", "learning"]
    name: str = Field(min_length=1)
    strategy: str | None = None


def _default_agents() -> list[dict[str, str]]:
    return [
        {"kind": "learning", "name": "AlphaBot", "strategy": "aggressive"},
        {"kind": "learning", "name": "BetaBot", "strategy": "conservative"},
        {"kind": "learning", "name": "GammaBot", "strategy": "adaptive"},
        {"kind": "learning", "name": "DeltaBot", "strategy": "contrarian"},
        {"kind": "heuristic", "name": "Trader_Balanced", "strategy": "balanced"},
        {"kind": "heuristic", "name": "Trader_Contrarian", "strategy": "contrarian"},
        {"kind": "heuristic", "name": "Trader_Aggressive", "strategy": "aggressive"},
    ]


class ScheduledEvent(BaseConfigModel):
    tick: PositiveInt
    template_id: str


class SimulationConfig(BaseConfigModel):
    simulation_ticks: PositiveInt = 100
    seed: int | None = 0
    tick_interval_ms: PositiveInt = 30_000
    price_snapshot_interval: PositiveInt = 5
    resources: list[ResourceConfig] = Field(default_factory=_default_resources)
    initial_market: dict[str, MarketEntryConfig] = Field(default_factory=_default_initial_market)
    market: MarketConfig = Field(default_factory=MarketConfig)
    cycle: CycleConfig = Field(default_factory=CycleConfig)
    portfolio: PortfolioConfig = Field(default_factory=PortfolioConfig)
    heuristic: HeuristicConfig = Field(default_factory=HeuristicConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    events: EventConfig = Field(default_factory=EventConfig)
    random_events: RandomEventConfig = Field(default_factory=RandomEventConfig)
    INITIAL_AGENTS: list[InitialAgent] = Field(default_factory=_default_agents)
    SCHEDULED_EVENTS: list[ScheduledEvent] = Field(default_factory=list)
    HEURISTIC_ID_PREFIX: str = "bot_"
    LEARNING_ID_PREFIX: str = "qbot_"
    logging_level: str = "INFO"
    log_file: str = output_dir + "simulation.log"
    log_format: str = "%(asctime)s - %(levelname)s - %(message)s"
    metrics_export_path: str = output_dir + "metrics"

    @model_validator(mode="after")
    def _validate_resources(self) -> SimulationConfig:
        names = [resource.name for resource in self.resources]
        if len(set(names)) != len(names):
            raise ValueError("Resource names must be unique")
        known = set(names)
        missing = known - set(self.initial_market)
        if missing:
            raise ValueError(f"initial_market missing entries for: {', '.join(sorted(missing))}")
        for template_id, template in self.events.templates.items():
            unknown = set(template.target_resources) - known
            if unknown:
                raise ValueError(
                    f"Event template {template_id!r} targets unknown resources: "
                    f"{', '.join(sorted(unknown))}"
                )
        for event_id, template in self.random_events.templates.items():
            if template.resource not in known:
                raise ValueError(f"Random event {event_id!r} targets unknown resource")
        for scheduled in self.SCHEDULED_EVENTS:
            if scheduled.template_id not in self.events.templates:
                raise ValueError(f"Scheduled event uses unknown template {scheduled.template_id!r}")
        return self

    @property
    def resource_names(self) -> list[str]:
        return [resource.name for resource in self.resources]

    @property
    def initial_agents(self) -> list[InitialAgent]:
        return self.INITIAL_AGENTS

    @property
    def scheduled_events(self) -> list[ScheduledEvent]:
        return self.SCHEDULED_EVENTS


def load_simulation_config(data: Mapping[str, ConfigValue] | None = None) -> SimulationConfig:
    if data is not None:
        coerced = _coerce_config_dict(cast(Mapping[str, object], data))
        return SimulationConfig(**coerced)
    return SimulationConfig()


def load_simulation_config_from_yaml(path: str | Path) -> SimulationConfig:
    import yaml

    with open(path, encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, Mapping):
        msg = f"Configuration file {path} must contain a mapping at the top level"
        raise TypeError(msg)
    return load_simulation_config(cast(Mapping[str, ConfigValue], payload))


CONFIG_MODEL: SimulationConfig = load_simulation_config()
