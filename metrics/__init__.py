"""Metrics package for market simulation runs."""

from .base import (
    AgentMetricsDict,
    MetricDict,
    TimeSeriesDict,
    TimeStep,
    TrackedAgent,
    ValueType,
)
from .collector import MetricsCollector
from .exporter import export_metrics

__all__ = [
    "AgentMetricsDict",
    "MetricDict",
    "MetricsCollector",
    "TimeSeriesDict",
    "TimeStep",
    "TrackedAgent",
    "ValueType",
    "export_metrics",
]
