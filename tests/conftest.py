"""Pytest configuration and shared fixtures."""
from pathlib import Path

import numpy as np
import pytest

from sail_routing.core import PolarTable, UniformField

# Project root is one level up from this file
PROJECT_ROOT = Path(__file__).resolve().parent.parent

TIME_START = np.datetime64("2024-01-01T00:00", "ns")

# Boat speed as fraction of the wind speed, fastest dead downwind
DOWNWIND_ANGLES = [0.0, 45.0, 90.0, 135.0, 150.0, 180.0]
DOWNWIND_FRACTIONS = [0.0, 0.05, 0.1, 0.15, 0.2, 0.5]
WIND_SPEEDS_MS = [0.0, 5.0, 10.0, 20.0]


def make_downwind_polar():
    return PolarTable(
        wind_angles_degrees=DOWNWIND_ANGLES,
        wind_speeds_ms=WIND_SPEEDS_MS,
        boat_speeds_ms=np.outer(DOWNWIND_FRACTIONS, WIND_SPEEDS_MS),
    )


@pytest.fixture
def downwind_polar():
    """Polar with 5 m/s dead downwind in 10 m/s of wind."""
    return make_downwind_polar()


@pytest.fixture
def north_wind():
    """10 m/s wind blowing towards the south."""
    return UniformField(wind_u=0.0, wind_v=-10.0)


@pytest.fixture
def calm():
    return UniformField()
