import pandas as pd
import pytest

from agents.actions import Action
from metrics import MetricsCollector, export_metrics
from sim_clock import ManualClock
from simulation.engine import MarketSimulation


@pytest.fixture
def populated_collector(deterministic_config) -> MetricsCollector:
    collector = MetricsCollector(deterministic_config)
    clock = ManualClock()
    sim = MarketSimulation(
        deterministic_config, clock=clock, persistence=collector, observer=collector
    )
    sim.add_agent("learning", "Alpha", "aggressive")
    sim.add_agent("heuristic", "Trader", "balanced")
    sim.trigger_event("gold_rush")
    for step in range(1, 21):
        clock.advance(16_000)
        sim.tick()
        collector.collect_agent_metrics(sim.agents.values(), sim.market, step)
        collector.collect_market_metrics(sim.market, step, sim.cycle.phase.value)
    return collector


def test_collector_rows(deterministic_config) -> None:
    collector = MetricsCollector(deterministic_config)

    collector.save_transaction("qbot_1", Action.buy("water", 5), 10.5, 3)
    collector.record_error("agent:qbot_1", "boom", {"tick": 3})

    assert collector.transactions == [
        {
            "tick": 3,
            "agent_id": "qbot_1",
            "kind": "buy",
            "resource": "water",
            "quantity": 5,
            "price": 10.5,
        }
    ]
    assert collector.errors == [{"source": "agent:qbot_1", "message": "boom", "tick": 3}]
    assert collector.latest_market_metrics() == {}


def test_collector_samples_agents_and_market(populated_collector) -> None:
    assert set(populated_collector.registered_agents) == {"qbot_1", "bot_1"}
    qbot_series = populated_collector.agent_metrics["qbot_1"]
    assert sorted(qbot_series) == list(range(1, 21))
    assert "epsilon" in qbot_series[20]
    assert "epsilon" not in populated_collector.agent_metrics["bot_1"][20]
    assert qbot_series[20]["holding_water"] >= 0

    latest = populated_collector.latest_market_metrics()
    assert latest is populated_collector.market_metrics[20]
    assert {"water_price", "food_supply", "materials_demand", "volatility"} <= set(latest)
    assert [row["template_id"] for row in populated_collector.event_records] == ["gold_rush"]


def test_export_writes_csv_files(populated_collector, tmp_path) -> None:
    written = export_metrics(populated_collector, tmp_path, timestamp="test")
    names = {path.name for path in written}

    assert {
        "price_snapshots_test.csv",
        "events_test.csv",
        "market_metrics_test.csv",
        "agent_metrics_test.csv",
    } <= names
    assert "errors_test.csv" not in names

    snapshots = pd.read_csv(tmp_path / "price_snapshots_test.csv")
    assert list(snapshots["tick"].unique()) == [5, 10, 15, 20]
    assert len(snapshots) == 16

    agents = pd.read_csv(tmp_path / "agent_metrics_test.csv")
    assert set(agents["agent_id"]) == {"qbot_1", "bot_1"}
    assert len(agents) == 40
    assert list(agents["time_step"]) == sorted(agents["time_step"])

    events = pd.read_csv(tmp_path / "events_test.csv")
    assert events.loc[0, "target_resources"] == "materials"
    assert events.loc[0, "total_steps"] == 18


def test_export_of_empty_collector_writes_nothing(deterministic_config, tmp_path) -> None:
    collector = MetricsCollector(deterministic_config)

    assert export_metrics(collector, tmp_path / "out", timestamp="empty") == []
    assert list((tmp_path / "out").iterdir()) == []
