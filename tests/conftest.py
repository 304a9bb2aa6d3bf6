import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from config import SimulationConfig
from sim_clock import ManualClock


@pytest.fixture
def deterministic_config() -> SimulationConfig:
    """Zero price noise and zero supply/demand drift."""
    return SimulationConfig(
        seed=42,
        market={"price_noise": 0.0, "supply_drift": 0, "demand_drift": 0},
        INITIAL_AGENTS=[],
    )


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()
