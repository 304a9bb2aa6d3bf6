from __future__ import annotations

import math
import random
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from config import SimulationConfig

from .actions import Action
from .base_agent import BaseAgent
from .portfolio import Portfolio

if TYPE_CHECKING:
    from agents.protocols import ErrorObserver
    from simulation.economic_cycle import CyclePhase
    from simulation.market import Market

HEURISTIC_STRATEGIES = ("balanced", "aggressive", "conservative", "adaptive", "contrarian")

Sentiment = Literal["bullish", "bearish", "neutral"]


@dataclass(frozen=True, slots=True)
class Personality:
    risk_tolerance: float
    greed: float
    patience: float
    confidence: float

    @classmethod
    def generate(cls, rng: random.Random) -> Personality:
        return cls(
            risk_tolerance=rng.random(),
            greed=rng.uniform(0.2, 0.8),
            patience=rng.uniform(0.2, 1.0),
            confidence=rng.uniform(0.5, 1.0),
        )


@dataclass(frozen=True, slots=True)
class Opportunity:
    resource: str
    score: float
    deviation: float
    ratio: float


class HeuristicAgent(BaseAgent):
    """
    Rule-based trader.

    Scores every resource from its deviation against a rolling price mean, the
    demand/supply ratio and the overall market sentiment, then trades the
    resource with the strongest signal once its patience timer has elapsed.
    """

    kind = "heuristic"

    def __init__(
        self,
        unique_id: str,
        name: str,
        strategy: str | None = None,
        portfolio: Portfolio | None = None,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
        error_observer: ErrorObserver | None = None,
    ) -> None:
        super().__init__(
            unique_id,
            name,
            strategy or "balanced",
            portfolio=portfolio,
            config=config,
            rng=rng,
            error_observer=error_observer,
        )
        if self.strategy not in HEURISTIC_STRATEGIES:
            raise ValueError(f"Unknown heuristic strategy: {self.strategy}")
        self.settings = self.config.heuristic

        self.personality = Personality.generate(self.rng)
        self.confidence_level: float = self.settings.initial_confidence
        self.patience_scale: float = 1.0
        self.next_action_at_ms: int = 0
        self.price_memory: dict[str, deque[float]] = {}
        self.sentiment: Sentiment = "neutral"
        self._net_worth_at_last_trade: float | None = None
        self.last_decision_trace: dict[str, Any] | None = None

    # --- Observation ---
    def observe(self, market: Market) -> None:
        for resource in market.resource_names:
            memory = self.price_memory.get(resource)
            if memory is None:
                memory = deque(maxlen=self.settings.price_window)
                self.price_memory[resource] = memory
            memory.append(market.price(resource))

    def assess_sentiment(self, market: Market) -> Sentiment:
        bullish = 0
        bearish = 0
        for resource in market.resource_names:
            ratio = market.ratio(resource)
            if ratio > self.settings.bullish_ratio:
                bullish += 1
            elif ratio < self.settings.bearish_ratio:
                bearish += 1
        if bullish > bearish:
            return "bullish"
        if bearish > bullish:
            return "bearish"
        return "neutral"

    def _adapt_to_outcome(self, market: Market) -> None:
        """Adjust confidence and patience from the result of the last trade."""
        if self._net_worth_at_last_trade is None:
            return
        delta = self.portfolio.net_worth(market) - self._net_worth_at_last_trade
        step = self.settings.confidence_step
        if delta > 0:
            self.confidence_level = min(0.9, self.confidence_level + step)
            self.patience_scale *= 0.95
        elif delta < 0:
            self.confidence_level = max(0.1, self.confidence_level - step)
            self.patience_scale *= 1.1
        self._net_worth_at_last_trade = None

    # --- Scoring ---
    def score_resource(self, market: Market, resource: str) -> Opportunity:
        s = self.settings
        price = market.price(resource)
        history = self.price_memory.get(resource)
        mean = sum(history) / len(history) if history else price
        deviation = (price - mean) / mean if mean > 0 else 0.0
        ratio = market.ratio(resource)

        if self.strategy == "contrarian":
            price_term = -deviation * s.contrarian_weight
        else:
            price_term = deviation * s.trend_weight

        sentiment_term = 0.0
        if self.sentiment == "bullish":
            sentiment_term = s.sentiment_weight
        elif self.sentiment == "bearish":
            sentiment_term = -s.sentiment_weight

        score = (price_term + (ratio - 1.0) * s.ratio_weight + sentiment_term) * self.confidence_level
        return Opportunity(resource, score, deviation, ratio)

    def _strategy_multiplier(self) -> float:
        if self.strategy == "adaptive":
            return self.personality.confidence + 0.5
        return float(self.settings.quantity_multipliers.get(self.strategy, 1.0))

    def size_order(self, market: Market, opportunity: Opportunity) -> int:
        s = self.settings
        base = self.rng.randint(s.min_base_quantity, s.max_base_quantity)
        raw = (
            base
            * self._strategy_multiplier()
            * (0.8 * self.personality.risk_tolerance + 0.4)
            * abs(opportunity.score)
        )
        quantity = math.floor(raw)
        resource = opportunity.resource
        if opportunity.score > 0:
            entry = market.entry(resource)
            affordable = math.floor(self.portfolio.cash / entry.price) if entry.price > 0 else 0
            quantity = min(quantity, affordable, entry.supply)
        else:
            quantity = min(quantity, self.portfolio.holding(resource))
        return max(0, quantity)

    # --- Decision ---
    def decide(self, market: Market, cycle_phase: CyclePhase, now_ms: int) -> Action:
        self.observe(market)
        self._adapt_to_outcome(market)
        self.sentiment = self.assess_sentiment(market)

        if now_ms < self.next_action_at_ms:
            return self._hold(f"waiting {self.next_action_at_ms - now_ms}ms", None)

        opportunities = [self.score_resource(market, r) for r in market.resource_names]
        best = max(opportunities, key=lambda o: abs(o.score))
        if abs(best.score) < self.settings.action_threshold:
            return self._hold(f"no signal above threshold ({best.score:.3f})", best)

        quantity = self.size_order(market, best)
        if quantity <= 0:
            return self._hold(f"cannot size order for {best.resource}", best)

        if best.score > 0:
            action = Action.buy(best.resource, quantity)
        else:
            action = Action.sell(best.resource, quantity)
        self._trace(action, f"score {best.score:.3f}, sentiment {self.sentiment}", best)
        self._net_worth_at_last_trade = self.portfolio.net_worth(market)
        return action

    def _hold(self, reasoning: str, best: Opportunity | None) -> Action:
        action = Action.hold()
        self._trace(action, reasoning, best)
        return action

    def _trace(self, action: Action, reasoning: str, best: Opportunity | None) -> None:
        self._last_reasoning = reasoning
        self.last_decision_trace = {
            "action": action.to_dict(),
            "reasoning": reasoning,
            "sentiment": self.sentiment,
            "confidence_level": round(self.confidence_level, 4),
            "best_opportunity": (
                {"resource": best.resource, "score": round(best.score, 4), "ratio": best.ratio}
                if best is not None
                else None
            ),
        }
        self.logger.log_decision(str(action), reasoning)

    def after_trade(self, action: Action, success: bool, market: Market, now_ms: int) -> None:
        if action.is_hold:
            return
        if not success:
            self._net_worth_at_last_trade = None
            return
        patience_ms = self.rng.randint(self.settings.min_patience_ms, self.settings.max_patience_ms)
        self.next_action_at_ms = now_ms + int(patience_ms * self.patience_scale)

    def current_confidence(self) -> float | None:
        return self.confidence_level

    def statistics(self) -> dict[str, Any]:
        stats = super().statistics()
        stats.update(
            {
                "confidence_level": round(self.confidence_level, 4),
                "patience_scale": round(self.patience_scale, 4),
                "sentiment": self.sentiment,
                "personality": {
                    "risk_tolerance": round(self.personality.risk_tolerance, 4),
                    "greed": round(self.personality.greed, 4),
                    "patience": round(self.personality.patience, 4),
                    "confidence": round(self.personality.confidence, 4),
                },
            }
        )
        return stats
