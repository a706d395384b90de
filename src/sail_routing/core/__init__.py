"""Core layer: Positions, routes, polars, environment fields, land and criteria."""

from .routes import Position, WayPoint, Route, seconds_to_timedelta
from .config import OBJECTIVES, RiskModel, RISK_DEFAULT
from .criteria import (
    CriteriaVector,
    ZERO_CRITERIA,
    DominanceComparator,
    dominates,
    dominated_by_any,
    non_dominated_mask,
    segment_risk,
)
from .geodesics import (
    knots_to_ms,
    ms_to_knots,
    move_fwd,
    get_distance_meters,
    get_azimuth_and_distance,
    get_length_meters,
    sample_along_geodesic,
)
from .polar import InvalidPolarData, PolarTable
from .environment import (
    OutOfCoverage,
    EnvironmentSample,
    EnvironmentField,
    UniformField,
    DatasetField,
    prepare_winds,
    prepare_currents,
    sample_environment,
)
from .land import LandMask

__all__ = [
    "Position",
    "WayPoint",
    "Route",
    "seconds_to_timedelta",
    "OBJECTIVES",
    "RiskModel",
    "RISK_DEFAULT",
    "CriteriaVector",
    "ZERO_CRITERIA",
    "DominanceComparator",
    "dominates",
    "dominated_by_any",
    "non_dominated_mask",
    "segment_risk",
    "knots_to_ms",
    "ms_to_knots",
    "move_fwd",
    "get_distance_meters",
    "get_azimuth_and_distance",
    "get_length_meters",
    "sample_along_geodesic",
    "InvalidPolarData",
    "PolarTable",
    "OutOfCoverage",
    "EnvironmentSample",
    "EnvironmentField",
    "UniformField",
    "DatasetField",
    "prepare_winds",
    "prepare_currents",
    "sample_environment",
    "LandMask",
]
