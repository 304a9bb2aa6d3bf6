from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from config import SimulationConfig, StrategyConfig

from .actions import Action, ActionKind
from .base_agent import BaseAgent
from .learning import (
    ExperienceBuffer,
    RewardInputs,
    StateKey,
    Transition,
    ValueTable,
    compute_reward,
    confidence_category,
    encode_state,
)
from .portfolio import Portfolio

if TYPE_CHECKING:
    from agents.protocols import AgentInspection, ErrorObserver, LearningStatistics
    from simulation.economic_cycle import CyclePhase
    from simulation.market import Market


def build_action_space(resources: list[str], quantities: list[int]) -> list[Action]:
    """Every Buy/Sell(resource, quantity) pair followed by Hold."""
    actions: list[Action] = []
    for resource in resources:
        for quantity in quantities:
            actions.append(Action.buy(resource, quantity))
            actions.append(Action.sell(resource, quantity))
    actions.append(Action.hold())
    return actions


@dataclass(slots=True)
class PendingDecision:
    """Decision whose reward is realized at the agent's next decision."""

    state: StateKey
    action: Action
    net_worth_before: float
    ratio_at_decision: float | None
    success: bool = False


class LearningAgent(BaseAgent):
    """
    Tabular Q-learning trader.

    Each decision first settles the previous one (reward from the realized
    net-worth change, one Q-update, one stored transition), then picks an
    epsilon-greedy action from the legal subset of a fixed action space.
    Strategy variants differ only in their `StrategyConfig` parameters and
    reward shaping.
    """

    kind = "learning"

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
            strategy or "",
            portfolio=portfolio,
            config=config,
            rng=rng,
            error_observer=error_observer,
        )
        self.settings = self.config.learning
        if not self.strategy:
            self.strategy = self.settings.default_strategy
        if self.strategy not in self.settings.strategies:
            raise ValueError(f"Unknown learning strategy: {self.strategy}")
        params: StrategyConfig = self.settings.strategies[self.strategy]

        self.alpha: float = params.alpha
        self.gamma: float = params.gamma
        self.initial_epsilon: float = params.epsilon
        self.epsilon: float = params.epsilon
        self.personality_confidence: float = self.rng.uniform(0.5, 1.0)

        self.value_table = ValueTable()
        self.experience = ExperienceBuffer(self.settings.experience_buffer_size)
        self.action_space: list[Action] = build_action_space(
            self.config.resource_names,
            self.settings.trade_quantities,
        )

        self.decision_count: int = 0
        self._pending: PendingDecision | None = None
        self.last_decision_trace: dict[str, Any] | None = None
        self.decision_history: deque[dict[str, Any]] = deque(
            maxlen=self.settings.decision_history_size
        )

        self.total_reward: float = 0.0
        self.episodes: int = 0
        self.exploration_count: int = 0
        self.exploitation_count: int = 0
        self.best_reward: float | None = None
        self.worst_reward: float | None = None
        self.recent_rewards: deque[float] = deque(maxlen=self.settings.recent_rewards_window)

    # --- Action space ---
    def legal_actions(self, market: Market) -> list[Action]:
        legal: list[Action] = []
        for action in self.action_space:
            if action.kind is ActionKind.HOLD:
                legal.append(action)
                continue
            resource = action.resource or ""
            if resource not in market.entries:
                continue
            if action.kind is ActionKind.BUY:
                entry = market.entry(resource)
                if (
                    self.portfolio.cash >= entry.price * action.quantity
                    and entry.supply >= action.quantity
                ):
                    legal.append(action)
            elif self.portfolio.holding(resource) >= action.quantity:
                legal.append(action)
        return legal

    def _bootstrap_actions(self) -> list[Action]:
        if len(self.action_space) <= self.settings.bootstrap_full_space_limit:
            return self.action_space
        sample = self.rng.sample(
            self.action_space[:-1],
            min(self.settings.bootstrap_sample_size, len(self.action_space) - 1),
        )
        return sample + [Action.hold()]

    # --- Learning ---
    def learn(self, state: StateKey, action: Action, reward: float, next_state: StateKey) -> float:
        next_max = self.value_table.max_value(next_state, self._bootstrap_actions())
        return self.value_table.update(state, action, reward, next_max, self.alpha, self.gamma)

    def replay(self) -> int:
        batch = self.experience.sample(self.rng, self.settings.replay_batch_size)
        for transition in batch:
            self.learn(transition.state, transition.action, transition.reward, transition.next_state)
        if batch:
            self.logger.debug(f"Replayed {len(batch)} transitions")
        return len(batch)

    def _settle_pending(self, market: Market, next_state: StateKey) -> float:
        pending = self._pending
        assert pending is not None
        delta = self.portfolio.net_worth(market) - pending.net_worth_before
        reward = compute_reward(
            RewardInputs(
                strategy=self.strategy,
                action=pending.action,
                success=pending.success,
                net_worth_delta=delta,
                ratio_at_decision=pending.ratio_at_decision,
                personality_confidence=self.personality_confidence,
            ),
            self.settings.rewards,
        )
        self.learn(pending.state, pending.action, reward, next_state)
        self.experience.add(Transition(pending.state, pending.action, reward, next_state))
        self._record_reward(reward)
        self._pending = None
        return reward

    def _record_reward(self, reward: float) -> None:
        self.last_reward = reward
        self.total_reward += reward
        self.episodes += 1
        self.recent_rewards.append(reward)
        if self.best_reward is None or reward > self.best_reward:
            self.best_reward = reward
        if self.worst_reward is None or reward < self.worst_reward:
            self.worst_reward = reward

    def decay_epsilon(self) -> float:
        self.epsilon = max(self.settings.epsilon_min, self.epsilon * self.settings.epsilon_decay)
        return self.epsilon

    # --- Decision ---
    def decide(self, market: Market, cycle_phase: CyclePhase, now_ms: int) -> Action:
        state = encode_state(market, self.portfolio, cycle_phase)
        if self._pending is not None:
            self._settle_pending(market, state)

        legal = self.legal_actions(market)
        explore = self.rng.random() < self.epsilon
        if explore:
            action = self.rng.choice(legal)
            self.exploration_count += 1
        else:
            action = self.value_table.best_action(state, legal)
            self.exploitation_count += 1
        self.decay_epsilon()

        ratio = market.ratio(action.resource) if action.resource is not None else None
        self._pending = PendingDecision(
            state=state,
            action=action,
            net_worth_before=self.portfolio.net_worth(market),
            ratio_at_decision=ratio,
        )
        self.decision_count += 1

        chosen_value = self.value_table.get(state, action)
        ranked = sorted(legal, key=lambda a: self.value_table.get(state, a), reverse=True)
        reasoning = (
            f"{'explore' if explore else 'exploit'}: {action} "
            f"(Q={chosen_value:.3f}, {confidence_category(chosen_value)})"
        )
        self._last_reasoning = reasoning
        self.last_decision_trace = {
            "tick_decision": self.decision_count,
            "state": state.describe(),
            "legal_actions": len(legal),
            "top_candidates": [
                {"action": str(a), "value": round(self.value_table.get(state, a), 4)}
                for a in ranked[:3]
            ],
            "explore": explore,
            "epsilon": round(self.epsilon, 4),
            "action": action.to_dict(),
            "confidence": confidence_category(chosen_value),
            "reasoning": reasoning,
        }
        self.decision_history.append(self.last_decision_trace)
        self.logger.log_decision(str(action), reasoning)

        interval = self.settings.replay_interval
        if interval and self.decision_count % interval == 0:
            self.replay()
        return action

    def after_trade(self, action: Action, success: bool, market: Market, now_ms: int) -> None:
        if self._pending is not None and self._pending.action == action:
            self._pending.success = success

    def on_decision_error(self, exc: Exception) -> None:
        self._pending = None
        self.last_reward = 0.0

    def current_confidence(self) -> float | None:
        return 1.0 - self.epsilon

    # --- Introspection ---
    def learning_statistics(self) -> LearningStatistics:
        recent = list(self.recent_rewards)
        return {
            "total_reward": round(self.total_reward, 4),
            "average_reward": round(self.total_reward / self.episodes, 4) if self.episodes else 0.0,
            "best_reward": self.best_reward,
            "worst_reward": self.worst_reward,
            "episodes": self.episodes,
            "exploration_count": self.exploration_count,
            "exploitation_count": self.exploitation_count,
            "recent_average_reward": round(sum(recent) / len(recent), 4) if recent else 0.0,
        }

    def value_table_sample(self, limit: int = 10) -> list[dict[str, object]]:
        return self.value_table.top_entries(limit)

    def statistics(self) -> dict[str, Any]:
        stats = super().statistics()
        stats.update(self.learning_statistics())
        stats["decisions"] = self.decision_count
        stats["experience_size"] = len(self.experience)
        return stats

    def inspect(self, market: Market) -> AgentInspection:
        inspection = super().inspect(market)
        inspection["epsilon"] = round(self.epsilon, 6)
        inspection["value_table_size"] = len(self.value_table)
        inspection["value_table_sample"] = self.value_table_sample()
        return inspection
