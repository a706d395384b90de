from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import pandas as pd
from shapely.geometry import LineString, Point

from .criteria import CriteriaVector, ZERO_CRITERIA
from .geodesics import get_azimuth_and_distance, get_length_meters, move_fwd


def seconds_to_timedelta(seconds):
    """Convert (arrays of) seconds to nanosecond timedeltas."""
    return np.round(np.asarray(seconds, dtype=float) * 1e9).astype(np.int64).astype(
        "timedelta64[ns]"
    )


@dataclass(frozen=True)
class Position:
    """Geographic position in degrees (WGS84)."""

    lon: float
    lat: float

    @property
    def point(self):
        """Point geometry with x=lon and y=lat."""
        return Point(self.lon, self.lat)

    def distance_to(self, other: Position) -> float:
        """Geodesic distance to other in meters."""
        return float(self.azimuth_and_distance_to(other)[1])

    def azimuth_to(self, other: Position) -> float:
        """Forward azimuth towards other in degrees [0, 360)."""
        return float(self.azimuth_and_distance_to(other)[0])

    def azimuth_and_distance_to(self, other: Position) -> tuple:
        return get_azimuth_and_distance(
            lon_start=self.lon, lat_start=self.lat, lon_end=other.lon, lat_end=other.lat
        )

    def move(self, azimuth_degrees: float = None, distance_meters: float = None):
        """Position after moving along a geodesic."""
        lon_new, lat_new = move_fwd(
            lon=self.lon,
            lat=self.lat,
            azimuth_degrees=azimuth_degrees,
            distance_meters=distance_meters,
        )
        return Position(lon=float(lon_new), lat=float(lat_new))


@dataclass(frozen=True)
class WayPoint:
    """Way point."""

    lon: float
    lat: float
    time: np.datetime64

    @property
    def position(self) -> Position:
        return Position(lon=self.lon, lat=self.lat)

    @property
    def data_frame(self):
        """Single-row data frame with cols lon, lat, time."""
        return pd.DataFrame(
            {"lon": self.lon, "lat": self.lat, "time": self.time},
            index=[
                0,
            ],
        )

    @property
    def point(self):
        """Point geometry with x=lon and y=lat."""
        return Point(self.lon, self.lat)

    def move_space(self, azimuth_degrees: float = None, distance_meters: float = None):
        """Move in space, keeping the time."""
        position = self.position.move(
            azimuth_degrees=azimuth_degrees, distance_meters=distance_meters
        )
        return WayPoint(lon=position.lon, lat=position.lat, time=self.time)

    def move_time(self, time_diff: np.timedelta64):
        """Move in time by time_diff."""
        return WayPoint(lon=self.lon, lat=self.lat, time=self.time + time_diff)


@dataclass(frozen=True)
class Route:
    """A sailed route: way points in forward order and the headings between them.

    Attributes
    ----------
    way_points : tuple of WayPoint
        At least two way points (which may be identical).
    headings : tuple of float
        Heading through water in degrees for each segment, ``nan`` where the
        boat drifted. One entry less than way points.
    criteria : CriteriaVector
        Criteria accumulated at the final way point.
    """

    way_points: Tuple
    headings: Tuple = None
    criteria: CriteriaVector = field(default=ZERO_CRITERIA)

    def __post_init__(self):
        if not isinstance(self.way_points, tuple):
            raise ValueError("Way_points need to be a tuple.")
        if len(self.way_points) < 2:
            raise ValueError(
                "A Route needs at least two way points which may be identical."
            )
        if self.headings is None:
            object.__setattr__(
                self, "headings", tuple(np.nan for _ in self.way_points[1:])
            )
        if len(self.headings) != len(self.way_points) - 1:
            raise ValueError("A Route needs one heading per segment.")

    def __len__(self):
        """Length is determined by number of way points."""
        return len(self.way_points)

    @property
    def data_frame(self):
        """Data frame with columns lon, lat, time and heading of the next segment."""
        df = pd.concat((wp.data_frame for wp in self.way_points), ignore_index=True)
        df["heading"] = list(self.headings) + [np.nan]
        return df

    @property
    def line_string(self):
        """LineString geometry with x=lon and y=lat."""
        return LineString([wp.point for wp in self.way_points])

    @property
    def length_meters(self) -> float:
        """Geodesic length of the route in meters."""
        return get_length_meters(self.line_string)

    @property
    def duration_seconds(self) -> float:
        return (
            (self.way_points[-1].time - self.way_points[0].time)
            / np.timedelta64(1, "ms")
            / 1000.0
        )

    @property
    def segment_durations_seconds(self) -> np.ndarray:
        times = np.array([wp.time for wp in self.way_points], dtype="datetime64[ns]")
        return np.diff(times) / np.timedelta64(1, "ms") / 1000.0
