"""Reward shaping for the learning agent.

The base signal is the change in net worth between two consecutive decisions;
strategy-specific shaping terms and penalties are added on top. All constants
come from `RewardConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass

from agents.actions import Action, ActionKind
from config import RewardConfig


@dataclass(frozen=True, slots=True)
class RewardInputs:
    strategy: str
    action: Action
    success: bool
    net_worth_delta: float
    ratio_at_decision: float | None
    personality_confidence: float


def _strategy_shaping(inputs: RewardInputs, cfg: RewardConfig) -> float:
    delta = inputs.net_worth_delta
    match inputs.strategy:
        case "aggressive":
            if delta > 0:
                return cfg.aggressive_quantity_bonus * inputs.action.quantity
        case "conservative":
            if delta >= 0:
                return min(delta * cfg.conservative_gain_rate, cfg.conservative_gain_cap)
            return delta * cfg.conservative_loss_rate
        case "contrarian":
            ratio = inputs.ratio_at_decision
            if delta > 0 and ratio is not None:
                if inputs.action.kind is ActionKind.BUY and ratio < cfg.contrarian_low_ratio:
                    return cfg.contrarian_bonus
                if inputs.action.kind is ActionKind.SELL and ratio > cfg.contrarian_high_ratio:
                    return cfg.contrarian_bonus
    return 0.0


def compute_reward(inputs: RewardInputs, cfg: RewardConfig) -> float:
    if not inputs.success:
        return 0.0

    reward = inputs.net_worth_delta * cfg.networth_scale
    reward += _strategy_shaping(inputs, cfg)
    if inputs.action.is_hold:
        reward -= cfg.hold_penalty
    elif inputs.net_worth_delta == 0:
        reward -= cfg.wasted_action_penalty

    return reward * (1.0 + inputs.personality_confidence * cfg.personality_weight)
