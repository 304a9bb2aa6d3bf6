"""Learning components for the tabular Q-learning agent.

This package contains the pieces the LearningAgent is composed of:
- state encoding: discretizes market + portfolio + cycle into a StateKey
- ValueTable: Q-values keyed by (StateKey, Action)
- ExperienceBuffer: bounded transition memory for replay
- reward shaping per strategy
"""

from .experience import ExperienceBuffer, Transition
from .rewards import RewardInputs, compute_reward
from .state_encoding import ResourceLevels, StateKey, encode_state
from .value_table import ValueTable, confidence_category

__all__ = [
    "ExperienceBuffer",
    "ResourceLevels",
    "RewardInputs",
    "StateKey",
    "Transition",
    "ValueTable",
    "compute_reward",
    "confidence_category",
    "encode_state",
]
