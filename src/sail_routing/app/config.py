from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Tuple

import numpy as np

from ..core.config import OBJECTIVES, RISK_DEFAULT, RiskModel

EXECUTOR_TYPES = ("sequential", "thread", "process")


class FatalConfigurationError(ValueError):
    """Raised if a routing run can't start with the given configuration."""

    pass


@dataclass(frozen=True)
class JourneyConfig:
    """Definition of the trip that needs to be routed."""

    name: str = "Journey"
    lon_start: float = -5.0
    lat_start: float = 48.0
    lon_end: float = -9.5
    lat_end: float = 43.0
    time_start: str = "2024-01-01T00:00"

    @property
    def time_start_datetime(self) -> np.datetime64:
        return np.datetime64(self.time_start, "ns")


@dataclass(frozen=True)
class IsochroneParams:
    """Parameters of the isochrone expansion."""

    # Time stepping
    time_step_hours: float = 1.0  # dt
    max_steps: int = 200

    # Candidate headings
    heading_resolution_degrees: float = 5.0
    include_direct_heading: bool = True
    allow_drift: bool = False
    maneuver_penalty: float = 0.0  # speed fraction lost when tacking or gybing

    # Arrival
    tolerance_meters: float = 5_000.0
    arrival_window_steps: int = 0  # further steps after the first arrival

    # Pruning
    sector_width_degrees: float = 1.0  # bearing sectors around the start
    objectives: Tuple[str, ...] = OBJECTIVES
    prune_revisited_cells: bool = True
    max_frontier_size: int | None = None

    # Land
    land_check_samples: int = 4

    # Parallelization
    expansion_chunk_size: int = 64
    num_workers: int = (
        2  # Number of worker processes/threads (ignored if executor_type="sequential")
    )
    executor_type: Literal["process", "thread", "sequential"] = "sequential"

    @property
    def time_step_seconds(self) -> float:
        return self.time_step_hours * 3600.0


@dataclass(frozen=True)
class RoutingConfig:
    """Top-level configuration consumed by the routing application."""

    journey: JourneyConfig = JourneyConfig()
    isochrone: IsochroneParams = IsochroneParams()
    risk: RiskModel = RISK_DEFAULT

    def validate(self) -> None:
        """Check parameter ranges.

        Raises
        ------
        FatalConfigurationError
            If any parameter is out of range.
        """
        params = self.isochrone
        problems = []
        if not params.time_step_hours > 0:
            problems.append(f"time_step_hours={params.time_step_hours} must be positive")
        if not 0 < params.heading_resolution_degrees <= 360:
            problems.append(
                f"heading_resolution_degrees={params.heading_resolution_degrees} "
                "must be in (0, 360]"
            )
        if params.max_steps < 1:
            problems.append(f"max_steps={params.max_steps} must be at least 1")
        if not params.tolerance_meters > 0:
            problems.append(f"tolerance_meters={params.tolerance_meters} must be positive")
        if not 0 < params.sector_width_degrees <= 360:
            problems.append(
                f"sector_width_degrees={params.sector_width_degrees} must be in (0, 360]"
            )
        objectives = tuple(params.objectives)
        if (
            not objectives
            or set(objectives) - set(OBJECTIVES)
            or len(set(objectives)) != len(objectives)
        ):
            problems.append(
                f"objectives={objectives} must be a non-empty unique subset of {OBJECTIVES}"
            )
        if not 0 <= params.maneuver_penalty <= 1:
            problems.append(f"maneuver_penalty={params.maneuver_penalty} must be in [0, 1]")
        if params.max_frontier_size is not None and params.max_frontier_size < 1:
            problems.append(
                f"max_frontier_size={params.max_frontier_size} must be at least 1"
            )
        if params.arrival_window_steps < 0:
            problems.append(
                f"arrival_window_steps={params.arrival_window_steps} can't be negative"
            )
        if params.land_check_samples < 0:
            problems.append(
                f"land_check_samples={params.land_check_samples} can't be negative"
            )
        if params.expansion_chunk_size < 1:
            problems.append(
                f"expansion_chunk_size={params.expansion_chunk_size} must be at least 1"
            )
        if params.executor_type not in EXECUTOR_TYPES:
            problems.append(f"Unknown executor_type: {params.executor_type}")
        elif params.executor_type != "sequential" and params.num_workers < 1:
            problems.append(
                f"{params.executor_type} executor requested but "
                f"num_workers={params.num_workers}"
            )
        if not self.risk.reference_wind_speed_ms > 0:
            problems.append("risk reference wind speed must be positive")
        if not (-90 <= self.journey.lat_start <= 90 and -90 <= self.journey.lat_end <= 90):
            problems.append("latitudes must be within [-90, 90]")
        try:
            self.journey.time_start_datetime
        except ValueError:
            problems.append(f"time_start={self.journey.time_start!r} is not a valid time")
        if problems:
            raise FatalConfigurationError("; ".join(problems))
