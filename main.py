# main.py
from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any, Sequence

from config import (
    CONFIG_MODEL,
    SimulationConfig,
    load_simulation_config_from_yaml,
)
from logger import log, setup_logger
from metrics import MetricsCollector, export_metrics
from sim_clock import ManualClock
from simulation.engine import MarketSimulation, TickSummary

DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "SIM_CONFIG"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the commodity market simulation.")
    parser.add_argument(
        "--config",
        help=(
            f"YAML configuration file (falls back to ${CONFIG_ENV_VAR}, "
            f"then ./{DEFAULT_CONFIG_FILE})."
        ),
    )
    parser.add_argument("--ticks", type=int, help="Number of ticks to run (overrides config).")
    parser.add_argument("--seed", type=int, help="Random seed (overrides config).")
    parser.add_argument(
        "--export",
        help="Directory for the CSV metrics export (default: config.metrics_export_path).",
    )
    return parser.parse_args(argv)


def _resolve_config_from_args_or_env(
    args: argparse.Namespace | None = None,
) -> SimulationConfig:
    """CLI --config wins over $SIM_CONFIG, which wins over ./config.yaml."""
    if args is None:
        args = parse_args()
    candidates = [args.config, os.environ.get(CONFIG_ENV_VAR)]
    for candidate in candidates:
        if candidate:
            return load_simulation_config_from_yaml(candidate)
    if Path(DEFAULT_CONFIG_FILE).is_file():
        return load_simulation_config_from_yaml(DEFAULT_CONFIG_FILE)
    return CONFIG_MODEL


def build_simulation(
    config: SimulationConfig,
    clock: ManualClock | None = None,
    collector: MetricsCollector | None = None,
) -> MarketSimulation:
    simulation = MarketSimulation(
        config,
        clock=clock or ManualClock(),
        persistence=collector,
        observer=collector,
    )
    for entry in config.initial_agents:
        simulation.add_agent(entry.kind, entry.name, entry.strategy)
    return simulation


def summarize_simulation(simulation: MarketSimulation) -> dict[str, Any]:
    """Final market state plus one inspection per agent, ranked by net worth."""
    agents = [simulation.inspect(agent_id) for agent_id in simulation.agents]
    ranked = sorted(
        (inspection for inspection in agents if inspection is not None),
        key=lambda inspection: inspection["net_worth"],
        reverse=True,
    )
    return {
        "ticks": simulation.tick_count,
        "failed_ticks": simulation.failed_ticks,
        "cycle": simulation.cycle.to_dict(),
        "market": simulation.market.snapshot(),
        "volatility": simulation.market.volatility(),
        "events": simulation.scheduler.to_dict(),
        "agents": ranked,
    }


def run_simulation(
    config: SimulationConfig | None = None,
    ticks: int | None = None,
    clock: ManualClock | None = None,
    collector: MetricsCollector | None = None,
) -> dict[str, Any]:
    """Drive a simulation for `ticks` ticks on a manual clock."""
    config = config or CONFIG_MODEL
    num_ticks = ticks if ticks is not None else config.simulation_ticks
    clock = clock or ManualClock()
    collector = collector or MetricsCollector(config)
    simulation = build_simulation(config, clock, collector)

    scheduled: dict[int, list[str]] = {}
    for event in config.scheduled_events:
        scheduled.setdefault(event.tick, []).append(event.template_id)

    summaries: list[TickSummary] = []
    for tick in range(1, num_ticks + 1):
        for template_id in scheduled.get(tick, []):
            result = simulation.trigger_event(template_id)
            log(f"Scheduled event {template_id} at tick {tick}: {result.to_dict()}", level="INFO")
        clock.advance(config.tick_interval_ms)
        summary = simulation.tick()
        summaries.append(summary)
        collector.collect_agent_metrics(simulation.agents.values(), simulation.market, tick)
        collector.collect_market_metrics(simulation.market, tick, summary.cycle_phase)

    log("Simulation complete.", level="INFO")
    result = summarize_simulation(simulation)
    result["summaries"] = summaries
    result["collector"] = collector
    return result


def main(argv: Sequence[str] | None = None) -> None:
    """Main simulation execution function."""
    args = parse_args(argv)
    config = _resolve_config_from_args_or_env(args)
    if args.seed is not None:
        config = config.model_copy(update={"seed": args.seed})

    setup_logger(config.logging_level, config.log_file, config.log_format)
    log("Starting market simulation...", level="INFO")

    result = run_simulation(config, ticks=args.ticks)
    export_metrics(result["collector"], args.export or config.metrics_export_path)

    for inspection in result["agents"]:
        log(
            f"{inspection['name']} ({inspection['kind']}/{inspection['strategy']}): "
            f"net worth {inspection['net_worth']:.2f}",
            level="INFO",
        )


if __name__ == "__main__":
    main()
