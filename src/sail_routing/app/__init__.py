"""User-facing/app layer: Configuration and the isochrone routing application."""

from .routing import (
    Cancelled,
    DestinationUnreachable,
    RoutingResult,
    StageLog,
    RoutingLog,
    RoutingApp,
    STATUS_CANCELLED,
    STATUS_REACHED,
    STATUS_UNREACHABLE,
)
from .config import (
    FatalConfigurationError,
    IsochroneParams,
    JourneyConfig,
    RoutingConfig,
)

__all__ = [
    "Cancelled",
    "DestinationUnreachable",
    "RoutingResult",
    "StageLog",
    "RoutingLog",
    "RoutingApp",
    "STATUS_CANCELLED",
    "STATUS_REACHED",
    "STATUS_UNREACHABLE",
    "FatalConfigurationError",
    "IsochroneParams",
    "JourneyConfig",
    "RoutingConfig",
]
