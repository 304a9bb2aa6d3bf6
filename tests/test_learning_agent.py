import random

import pytest

from agents.actions import Action, ActionKind
from agents.learning import ExperienceBuffer, Transition, ValueTable, confidence_category
from agents.learning.state_encoding import encode_state
from agents.learning_agent import LearningAgent, build_action_space
from agents.portfolio import Portfolio
from agents.protocols import Observable
from config import SimulationConfig
from simulation.economic_cycle import CyclePhase
from simulation.market import Market

PHASE = CyclePhase.EXPANSION


class RecordingObserver:
    def __init__(self) -> None:
        self.errors: list[tuple[str, str, dict]] = []

    def record_error(self, source: str, message: str, context: dict) -> None:
        self.errors.append((source, message, context))


def _greedy_config(deterministic_config: SimulationConfig) -> SimulationConfig:
    return deterministic_config.model_copy(
        update={
            "learning": deterministic_config.learning.model_copy(
                update={
                    "strategies": {
                        "greedy": deterministic_config.learning.strategies["adaptive"].model_copy(
                            update={"alpha": 0.5, "gamma": 0.9, "epsilon": 0.0}
                        )
                    },
                    "default_strategy": "greedy",
                }
            )
        }
    )


def test_action_space_covers_every_resource_quantity_and_hold() -> None:
    actions = build_action_space(["water", "food", "energy", "materials"], [1, 5, 10, 15, 20, 25])

    assert len(actions) == 49
    assert actions[-1] == Action.hold()
    assert Action.sell("materials", 25) in actions
    assert len(set(actions)) == 49


def test_strategy_parameters_are_taken_from_config() -> None:
    agent = LearningAgent("qbot_1", "Alpha", "aggressive", rng=random.Random(0))

    assert agent.alpha == pytest.approx(0.15)
    assert agent.gamma == pytest.approx(0.9)
    assert agent.epsilon == pytest.approx(0.4)
    assert 0.5 <= agent.personality_confidence <= 1.0


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(ValueError):
        LearningAgent("qbot_1", "Alpha", "reckless")


def test_epsilon_decays_monotonically(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = LearningAgent(
        "qbot_1", "Gamma", "adaptive", config=deterministic_config, rng=random.Random(4)
    )
    previous = agent.epsilon

    for n in range(1, 61):
        agent.decide(market, PHASE, now_ms=0)
        assert agent.epsilon <= previous
        assert agent.epsilon == pytest.approx(max(0.05, 0.3 * 0.995**n))
        previous = agent.epsilon


def test_epsilon_bottoms_out_at_minimum(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = LearningAgent(
        "qbot_1", "Gamma", "adaptive", config=deterministic_config, rng=random.Random(4)
    )

    for _ in range(600):
        agent.decide(market, PHASE, now_ms=0)

    assert agent.epsilon == pytest.approx(0.05)


def test_broke_agent_can_only_hold(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = Portfolio(cash=0.0, holdings={name: 0 for name in market.resource_names})
    agent = LearningAgent(
        "qbot_1",
        "Broke",
        "adaptive",
        portfolio=portfolio,
        config=deterministic_config,
        rng=random.Random(1),
    )

    assert agent.legal_actions(market) == [Action.hold()]
    assert agent.decide(market, PHASE, now_ms=0) == Action.hold()


def test_legal_actions_respect_cash_supply_and_holdings(deterministic_config) -> None:
    market = Market(deterministic_config)
    portfolio = Portfolio(cash=100.0, holdings={"water": 5, "food": 0, "energy": 0, "materials": 0})
    agent = LearningAgent(
        "qbot_1", "Small", "adaptive", portfolio=portfolio, config=deterministic_config
    )

    legal = set(agent.legal_actions(market))

    assert Action.buy("water", 10) in legal  # 10 * 10 == 100
    assert Action.buy("water", 15) not in legal
    assert Action.buy("materials", 5) not in legal  # 125 > 100
    assert Action.sell("water", 5) in legal
    assert Action.sell("water", 10) not in legal
    assert Action.hold() in legal


def test_reward_is_realized_at_next_decision(deterministic_config) -> None:
    cfg = _greedy_config(deterministic_config)
    market = Market(cfg)
    agent = LearningAgent("qbot_1", "Greedy", config=cfg, rng=random.Random(2))
    first_state = encode_state(market, agent.portfolio, PHASE)

    record = agent.act(market, PHASE, now_ms=0, tick=1)

    # all values tie at zero, so the first legal action wins
    assert record.action == Action.buy("water", 1)
    assert record.success is True
    assert agent.last_reward is None

    market.entries["water"].price = 20.0
    agent.act(market, PHASE, now_ms=0, tick=2)

    # the whole water position (50 + 1 units) is revalued at the new price
    expected = 51 * 10 * 0.01 * (1 + agent.personality_confidence * 0.1)
    assert agent.last_reward == pytest.approx(expected)
    assert agent.value_table.get(first_state, Action.buy("water", 1)) == pytest.approx(
        0.5 * expected
    )
    assert len(agent.experience) == 1
    assert agent.episodes == 1


def test_decision_error_falls_back_to_hold(deterministic_config, monkeypatch) -> None:
    observer = RecordingObserver()
    market = Market(deterministic_config)
    agent = LearningAgent(
        "qbot_1",
        "Fragile",
        "adaptive",
        config=deterministic_config,
        rng=random.Random(3),
        error_observer=observer,
    )
    agent.act(market, PHASE, now_ms=0, tick=1)

    def boom(*args, **kwargs):
        raise RuntimeError("encoding exploded")

    monkeypatch.setattr(agent, "decide", boom)
    record = agent.act(market, PHASE, now_ms=0, tick=2)

    assert record.action.kind is ActionKind.HOLD
    assert record.success is True
    assert record.reward == 0.0
    assert agent._pending is None
    assert observer.errors[0][0] == "agent:qbot_1"
    assert "encoding exploded" in observer.errors[0][1]


def test_replay_reuses_stored_transitions(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = LearningAgent(
        "qbot_1", "Replay", "adaptive", config=deterministic_config, rng=random.Random(5)
    )
    for tick in range(1, 10):
        agent.act(market, PHASE, now_ms=0, tick=tick)

    assert len(agent.experience) == 8
    assert agent.replay() == 8


def test_statistics_and_trace(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = LearningAgent(
        "qbot_1", "Stats", "conservative", config=deterministic_config, rng=random.Random(6)
    )
    for tick in range(1, 21):
        agent.act(market, PHASE, now_ms=0, tick=tick)

    stats = agent.learning_statistics()
    assert stats["episodes"] == 19
    assert stats["exploration_count"] + stats["exploitation_count"] == 20
    assert stats["best_reward"] >= stats["worst_reward"]
    assert len(agent.decision_history) == 20
    trace = agent.last_decision_trace
    assert trace is not None
    assert trace["legal_actions"] >= 1
    assert trace["action"] == agent.last_action.to_dict()

    inspection = agent.inspect(market)
    assert inspection["kind"] == "learning"
    assert inspection["epsilon"] == pytest.approx(agent.epsilon, abs=1e-6)
    assert inspection["value_table_size"] == len(agent.value_table)
    sample = inspection["value_table_sample"]
    assert sample == agent.value_table.top_entries(10)
    assert len(sample) == min(10, len(agent.value_table))
    assert {"state", "action", "value", "confidence"} <= set(sample[0])


def test_q_update_converges_for_fixed_reward(deterministic_config) -> None:
    market = Market(deterministic_config)
    state = encode_state(market, Portfolio.from_config(deterministic_config), PHASE)
    action = Action.buy("water", 5)
    table = ValueTable()
    previous = 0.0
    last_delta = None

    for _ in range(3000):
        next_max = table.max_value(state, [action])
        value = table.update(state, action, 1.0, next_max, alpha=0.1, gamma=0.9)
        delta = abs(value - previous)
        assert abs(value) >= abs(previous)
        if last_delta is not None:
            assert delta <= last_delta + 1e-12
        previous, last_delta = value, delta

    assert previous == pytest.approx(10.0, abs=1e-6)
    assert last_delta < 1e-9


def test_value_table_ties_resolve_to_first_action(deterministic_config) -> None:
    market = Market(deterministic_config)
    state = encode_state(market, Portfolio.from_config(deterministic_config), PHASE)
    table = ValueTable()
    actions = [Action.sell("food", 5), Action.buy("water", 1), Action.hold()]

    assert table.best_action(state, actions) == actions[0]
    table.set(state, Action.hold(), 0.5)
    assert table.best_action(state, actions) == Action.hold()
    assert table.top_entries(1)[0]["confidence"] == "low"


@pytest.mark.parametrize(
    ("value", "category"),
    [(12.0, "very_high"), (-6.0, "high"), (2.0, "medium"), (0.5, "low"), (0.01, "very_low")],
)
def test_confidence_category(value, category) -> None:
    assert confidence_category(value) == category


def test_experience_buffer_is_circular(deterministic_config) -> None:
    market = Market(deterministic_config)
    state = encode_state(market, Portfolio.from_config(deterministic_config), PHASE)
    buffer = ExperienceBuffer(3)

    for reward in range(5):
        buffer.add(Transition(state, Action.hold(), float(reward), state))

    assert len(buffer) == 3
    sample = buffer.sample(random.Random(0), 10)
    assert sorted(t.reward for t in sample) == [2.0, 3.0, 4.0]


def test_action_space_uses_every_configured_resource(deterministic_config) -> None:
    agent = LearningAgent(
        "qbot_1",
        "Partial",
        "adaptive",
        portfolio=Portfolio(cash=500.0, holdings={"water": 5}),
        config=deterministic_config,
        rng=random.Random(8),
    )

    assert len(agent.action_space) == 49
    assert Action.buy("materials", 1) in agent.action_space


def test_learning_agent_is_observable(deterministic_config) -> None:
    market = Market(deterministic_config)
    agent = LearningAgent(
        "qbot_1", "Trace", "adaptive", config=deterministic_config, rng=random.Random(9)
    )
    agent.act(market, PHASE, now_ms=0, tick=1)

    assert isinstance(agent, Observable)
    assert agent.last_decision_trace is not None
