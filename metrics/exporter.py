"""Exporter module - CSV export functionality."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from logger import log

if TYPE_CHECKING:
    from .collector import MetricsCollector


def export_metrics(
    collector: MetricsCollector,
    path: Optional[Path | str] = None,
    timestamp: Optional[str] = None,
) -> List[Path]:
    """Persist every collected series to CSV files using pandas."""
    export_dir = Path(path) if path is not None else collector.export_path
    export_dir.mkdir(parents=True, exist_ok=True)
    stamp = timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")

    exports = [
        _export_records(
            collector.transactions, export_dir / f"transactions_{stamp}.csv", ["tick"]
        ),
        _export_records(
            collector.price_snapshots,
            export_dir / f"price_snapshots_{stamp}.csv",
            ["tick", "resource"],
        ),
        _export_records(collector.event_records, export_dir / f"events_{stamp}.csv", None),
        _export_records(collector.errors, export_dir / f"errors_{stamp}.csv", None),
        _export_time_series(collector.market_metrics, export_dir / f"market_metrics_{stamp}.csv"),
        _export_agent_metrics_df(
            collector.agent_metrics, export_dir / f"agent_metrics_{stamp}.csv"
        ),
    ]

    written = [p for p in exports if p is not None]
    if written:
        log(
            "MetricsCollector: Exported CSV metrics: " + ", ".join(str(p.name) for p in written),
            level="INFO",
        )
    else:
        log("MetricsCollector: No metrics available for CSV export", level="WARNING")
    return written


def _export_records(
    rows: List[Dict[str, Any]], output_file: Path, sort_by: Optional[List[str]]
) -> Optional[Path]:
    if not rows:
        return None

    import pandas as pd

    df = pd.DataFrame.from_records(rows)
    if sort_by and all(column in df.columns for column in sort_by):
        df = df.sort_values(sort_by, kind="stable")
    df.to_csv(output_file, index=False)
    return output_file


def _export_time_series(series: Dict[int, Dict[str, Any]], output_file: Path) -> Optional[Path]:
    if not series:
        return None

    rows = []
    for step, metrics in series.items():
        row: Dict[str, Any] = {"time_step": int(step)}
        row.update(metrics)
        rows.append(row)
    return _export_records(rows, output_file, ["time_step"])


def _export_agent_metrics_df(
    agent_metrics: Dict[str, Dict[int, Dict[str, Any]]], output_file: Path
) -> Optional[Path]:
    rows = []
    for agent_id, time_series in agent_metrics.items():
        for step, metrics in time_series.items():
            row: Dict[str, Any] = {"time_step": int(step), "agent_id": str(agent_id)}
            row.update(metrics)
            rows.append(row)
    return _export_records(rows, output_file, ["time_step", "agent_id"])
