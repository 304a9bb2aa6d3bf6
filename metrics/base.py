"""Base types and constants for the metrics package."""

from typing import Any, Dict, Protocol, Union

# Type aliases
TimeStep = int
ValueType = Union[float, int, str, bool, None]
MetricDict = Dict[str, Any]
TimeSeriesDict = Dict[TimeStep, MetricDict]
AgentMetricsDict = Dict[str, TimeSeriesDict]


class TrackedAgent(Protocol):
    """Protocol defining the minimum required attributes for tracked agents"""

    unique_id: str
    name: str
    kind: str
    strategy: str
