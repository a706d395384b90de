"""Isochrone expansion: history arena, frontiers and the expansion kernel.

The kernel is a pure function of a chunk of frontier points and an immutable
expansion context. It never touches the arena, so chunks can be expanded by
any executor and the results concatenated in chunk order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Tuple

import numpy as np
import pandas as pd

from ..core.config import OBJECTIVES, RISK_DEFAULT, RiskModel
from ..core.criteria import segment_risk
from ..core.environment import OutOfCoverage, sample_environment
from ..core.geodesics import (
    direction_from_uv,
    get_azimuth_and_distance,
    move_fwd,
    sample_along_geodesic,
    signed_angle_difference,
    uv_from_direction,
)
from ..core.land import LandMask
from ..core.polar import PolarTable
from ..core.routes import Route, seconds_to_timedelta

_ARENA_COLUMNS = {
    "lon": float,
    "lat": float,
    "elapsed_s": float,
    "parent": np.int64,
    "heading": float,
    "side": np.int8,
    "segment_s": float,
    "step": np.int64,
}


def _column(name):
    return property(
        lambda self: self._columns[name][: self._size],
        doc=f"Stored {name} of all points.",
    )


class HistoryArena:
    """Append-only columnar store of all surviving isochrone points.

    Predecessor links are integer indices into the arena, ``-1`` marks the
    root. Rows are never modified after they are appended.
    """

    lon = _column("lon")
    lat = _column("lat")
    elapsed_s = _column("elapsed_s")
    parent = _column("parent")
    heading = _column("heading")
    side = _column("side")
    segment_s = _column("segment_s")
    step = _column("step")

    def __init__(self, capacity: int = 1024):
        self._size = 0
        self._capacity = max(int(capacity), 1)
        self._columns = {
            name: np.empty(self._capacity, dtype=dtype)
            for name, dtype in _ARENA_COLUMNS.items()
        }
        self._criteria = np.empty((self._capacity, len(OBJECTIVES)))

    def __len__(self):
        return self._size

    def __repr__(self):
        return f"HistoryArena(size={self._size}, capacity={self._capacity})"

    @property
    def criteria(self) -> np.ndarray:
        """Accumulated (time, distance, risk) of all points."""
        return self._criteria[: self._size]

    def _reserve(self, size: int):
        if size <= self._capacity:
            return
        while self._capacity < size:
            self._capacity *= 2
        for name, column in self._columns.items():
            grown = np.empty(self._capacity, dtype=column.dtype)
            grown[: self._size] = column[: self._size]
            self._columns[name] = grown
        criteria = np.empty((self._capacity, len(OBJECTIVES)))
        criteria[: self._size] = self._criteria[: self._size]
        self._criteria = criteria

    def append(
        self,
        lon=None,
        lat=None,
        elapsed_s=None,
        criteria=None,
        parent=None,
        heading=None,
        side=None,
        segment_s=None,
        step=None,
    ) -> np.ndarray:
        """Append points and return their arena indices."""
        lon = np.atleast_1d(np.asarray(lon, dtype=float))
        n = lon.size
        start = self._size
        self._reserve(start + n)
        values = {
            "lon": lon,
            "lat": lat,
            "elapsed_s": elapsed_s,
            "parent": parent,
            "heading": heading,
            "side": side,
            "segment_s": segment_s,
            "step": step,
        }
        for name, value in values.items():
            self._columns[name][start : start + n] = value
        self._criteria[start : start + n] = np.reshape(criteria, (n, len(OBJECTIVES)))
        self._size = start + n
        return np.arange(start, start + n)

    def add_root(self, lon: float = None, lat: float = None) -> int:
        """Append the start point with zero criteria."""
        return int(
            self.append(
                lon=lon,
                lat=lat,
                elapsed_s=0.0,
                criteria=np.zeros(len(OBJECTIVES)),
                parent=-1,
                heading=np.nan,
                side=0,
                segment_s=0.0,
                step=0,
            )[0]
        )

    def chain(self, index: int) -> np.ndarray:
        """Arena indices from the root to index in forward order."""
        indices = []
        parent = self._columns["parent"]
        index = int(index)
        while index >= 0:
            indices.append(index)
            index = int(parent[index])
        return np.array(indices[::-1], dtype=np.int64)

    @property
    def data_frame(self) -> pd.DataFrame:
        """All points with one column per stored field."""
        df = pd.DataFrame({name: getattr(self, name) for name in _ARENA_COLUMNS})
        for n, objective in enumerate(OBJECTIVES):
            df[objective] = self.criteria[:, n]
        return df


@dataclass(frozen=True)
class Frontier:
    """One time slice of the isochrone expansion."""

    step: int
    elapsed_s: float
    time: np.datetime64
    indices: np.ndarray

    def __len__(self):
        return len(self.indices)


@dataclass
class FrontierChunk:
    """Copied state of a few frontier points, handed to the expansion kernel."""

    index: np.ndarray
    lon: np.ndarray
    lat: np.ndarray
    elapsed_s: np.ndarray
    criteria: np.ndarray
    side: np.ndarray

    def __len__(self):
        return len(self.index)


def split_frontier(
    frontier: Frontier, arena: HistoryArena, chunk_size: int = 64
) -> List[FrontierChunk]:
    """Copy frontier state out of the arena in chunks of chunk_size points."""
    chunks = []
    for start in range(0, len(frontier), chunk_size):
        index = np.array(frontier.indices[start : start + chunk_size])
        chunks.append(
            FrontierChunk(
                index=index,
                lon=arena.lon[index],
                lat=arena.lat[index],
                elapsed_s=arena.elapsed_s[index],
                criteria=arena.criteria[index],
                side=arena.side[index],
            )
        )
    return chunks


@dataclass
class CandidateBatch:
    """Candidate points produced by expanding frontier points.

    Rows are ordered by parent (in chunk order), then by heading (grid
    headings, direct heading, drift).
    """

    parent: np.ndarray
    lon: np.ndarray
    lat: np.ndarray
    elapsed_s: np.ndarray
    criteria: np.ndarray
    heading: np.ndarray
    side: np.ndarray
    segment_s: np.ndarray
    arrived: np.ndarray
    num_out_of_coverage: int = 0
    num_on_land: int = 0

    def __len__(self):
        return len(self.parent)

    @classmethod
    def empty(cls, num_out_of_coverage: int = 0) -> CandidateBatch:
        return cls(
            parent=np.zeros(0, dtype=np.int64),
            lon=np.zeros(0),
            lat=np.zeros(0),
            elapsed_s=np.zeros(0),
            criteria=np.zeros((0, len(OBJECTIVES))),
            heading=np.zeros(0),
            side=np.zeros(0, dtype=np.int8),
            segment_s=np.zeros(0),
            arrived=np.zeros(0, dtype=bool),
            num_out_of_coverage=num_out_of_coverage,
        )

    @classmethod
    def concatenate(cls, batches) -> CandidateBatch:
        batches = list(batches)
        if not batches:
            return cls.empty()
        return cls(
            parent=np.concatenate([b.parent for b in batches]),
            lon=np.concatenate([b.lon for b in batches]),
            lat=np.concatenate([b.lat for b in batches]),
            elapsed_s=np.concatenate([b.elapsed_s for b in batches]),
            criteria=np.concatenate([b.criteria for b in batches]),
            heading=np.concatenate([b.heading for b in batches]),
            side=np.concatenate([b.side for b in batches]),
            segment_s=np.concatenate([b.segment_s for b in batches]),
            arrived=np.concatenate([b.arrived for b in batches]),
            num_out_of_coverage=sum(b.num_out_of_coverage for b in batches),
            num_on_land=sum(b.num_on_land for b in batches),
        )

    def subset(self, mask) -> CandidateBatch:
        """Rows selected by a boolean mask or index array; counters are kept."""
        return CandidateBatch(
            parent=self.parent[mask],
            lon=self.lon[mask],
            lat=self.lat[mask],
            elapsed_s=self.elapsed_s[mask],
            criteria=self.criteria[mask],
            heading=self.heading[mask],
            side=self.side[mask],
            segment_s=self.segment_s[mask],
            arrived=self.arrived[mask],
            num_out_of_coverage=self.num_out_of_coverage,
            num_on_land=self.num_on_land,
        )


@dataclass(frozen=True)
class ExpansionContext:
    """Everything the expansion kernel needs besides the frontier points.

    Immutable for the whole run and shared by all workers.
    """

    polar: PolarTable
    field: Any
    lon_end: float
    lat_end: float
    time_start: np.datetime64
    time_step_seconds: float = 3600.0
    headings: Tuple[float, ...] = ()
    include_direct_heading: bool = True
    allow_drift: bool = False
    maneuver_penalty: float = 0.0
    tolerance_meters: float = 5000.0
    land_mask: LandMask = None
    land_check_samples: int = 4
    risk: RiskModel = RISK_DEFAULT


def heading_grid(resolution_degrees: float = 5.0) -> np.ndarray:
    """Headings 0, res, 2 res, ... below 360 degrees."""
    return np.arange(0.0, 360.0, resolution_degrees)


def wind_angle_and_side(wind_u, wind_v, heading_degrees) -> tuple:
    """Wind angle relative to the heading and the tack side.

    The angle is where the wind comes from, measured clockwise from the bow
    in [-180, 180). Side is +1 with wind from starboard, -1 from port and 0
    head to wind, dead downwind or in calm.
    """
    wind_u = np.asarray(wind_u, dtype=float)
    wind_v = np.asarray(wind_v, dtype=float)
    wind_from = direction_from_uv(-wind_u, -wind_v)
    angle = signed_angle_difference(wind_from, heading_degrees)
    calm = np.hypot(wind_u, wind_v) == 0.0
    side = np.where(calm | (angle == 0.0) | (angle == -180.0), 0, np.sign(angle))
    return angle, side.astype(np.int8)


def ground_velocity(
    context: ExpansionContext,
    wind_u=None,
    wind_v=None,
    current_u=None,
    current_v=None,
    heading=None,
    parent_side=None,
) -> tuple:
    """Velocity over ground for flat candidate arrays.

    The polar is entered with the true wind relative to the water mass.
    Apparent wind is not modelled since polars are tabulated against true
    wind. A heading of ``nan`` drifts with the current and keeps the
    parent's tack side.

    Returns
    -------
    tuple
        (ground_u, ground_v, wind_speed_ms, side)
    """
    water_wind_u = wind_u - current_u
    water_wind_v = wind_v - current_v
    wind_speed = np.hypot(water_wind_u, water_wind_v)
    drift = np.isnan(heading)
    heading = np.where(drift, 0.0, heading)

    angle, side = wind_angle_and_side(water_wind_u, water_wind_v, heading)
    boat_speed = np.where(drift, 0.0, context.polar.speed(wind_speed, angle))
    tack = (parent_side != 0) & (side != 0) & (side != parent_side) & ~drift
    boat_speed = np.where(tack, boat_speed * (1.0 - context.maneuver_penalty), boat_speed)
    side = np.where(drift, parent_side, side).astype(np.int8)

    boat_u, boat_v = uv_from_direction(boat_speed, heading)
    return boat_u + current_u, boat_v + current_v, wind_speed, side


def _candidate_headings(chunk_lon, chunk_lat, context: ExpansionContext) -> np.ndarray:
    n = len(chunk_lon)
    columns = [np.tile(np.asarray(context.headings, dtype=float), (n, 1))]
    if context.include_direct_heading:
        direct, _ = get_azimuth_and_distance(
            lon_start=chunk_lon,
            lat_start=chunk_lat,
            lon_end=np.full(n, context.lon_end),
            lat_end=np.full(n, context.lat_end),
        )
        columns.append(np.reshape(direct, (n, 1)))
    if context.allow_drift:
        columns.append(np.full((n, 1), np.nan))
    return np.hstack(columns)


def expand_chunk(chunk: FrontierChunk, context: ExpansionContext) -> CandidateBatch:
    """Expand frontier points by one time step.

    Each parent is sailed along every candidate heading for one time step.
    Candidates whose segment passes within the tolerance of the destination
    are truncated at the closest approach and flagged as arrived. Parents
    outside the environment coverage yield no candidates. Candidates ending
    outside the coverage are dropped unless they arrived, and so are
    segments crossing land.
    """
    if len(chunk) == 0:
        return CandidateBatch.empty()

    times = context.time_start + seconds_to_timedelta(chunk.elapsed_s)
    wind_u, wind_v, current_u, current_v, covered = sample_environment(
        context.field, chunk.lon, chunk.lat, times
    )
    headings = _candidate_headings(chunk.lon, chunk.lat, context)
    num_headings = headings.shape[1]
    num_out_of_coverage = int((~covered).sum()) * num_headings
    if not covered.any():
        return CandidateBatch.empty(num_out_of_coverage=num_out_of_coverage)

    # flatten to one row per (parent, heading)
    rows = np.repeat(np.flatnonzero(covered), num_headings)
    heading = headings[covered].ravel()
    lon = chunk.lon[rows]
    lat = chunk.lat[rows]

    ground_u, ground_v, wind_speed, side = ground_velocity(
        context,
        wind_u=wind_u[rows],
        wind_v=wind_v[rows],
        current_u=current_u[rows],
        current_v=current_v[rows],
        heading=heading,
        parent_side=chunk.side[rows],
    )
    ground_speed = np.hypot(ground_u, ground_v)
    course = direction_from_uv(ground_u, ground_v)
    time_step = float(context.time_step_seconds)

    # closest approach to the destination, planar in the parent's frame
    goal_azimuth, goal_distance = get_azimuth_and_distance(
        lon_start=lon,
        lat_start=lat,
        lon_end=np.full(lon.shape, context.lon_end),
        lat_end=np.full(lat.shape, context.lat_end),
    )
    goal_x, goal_y = uv_from_direction(goal_distance, goal_azimuth)
    step_x, step_y = uv_from_direction(ground_speed * time_step, course)
    step_squared = step_x**2 + step_y**2
    with np.errstate(divide="ignore", invalid="ignore"):
        fraction = np.where(
            step_squared > 0.0, (goal_x * step_x + goal_y * step_y) / step_squared, 0.0
        )
    fraction = np.clip(fraction, 0.0, 1.0)
    miss_distance = np.hypot(goal_x - fraction * step_x, goal_y - fraction * step_y)
    arrived = (miss_distance <= context.tolerance_meters) & (fraction > 0.0)

    segment_s = np.where(arrived, fraction * time_step, time_step)
    distance = ground_speed * segment_s
    lon_new, lat_new = move_fwd(
        lon=lon, lat=lat, azimuth_degrees=course, distance_meters=distance
    )
    # boats that do not move stay exactly where they are
    lon_new = np.where(distance > 0.0, lon_new, lon)
    lat_new = np.where(distance > 0.0, lat_new, lat)
    elapsed_s = chunk.elapsed_s[rows] + segment_s
    *_, end_covered = sample_environment(
        context.field,
        lon_new,
        lat_new,
        context.time_start + seconds_to_timedelta(elapsed_s),
    )
    dropped = ~(end_covered | arrived)

    segment_criteria = np.stack(
        [segment_s, distance, segment_risk(wind_speed, segment_s, context.risk)],
        axis=-1,
    )
    batch = CandidateBatch(
        parent=chunk.index[rows],
        lon=lon_new,
        lat=lat_new,
        elapsed_s=elapsed_s,
        criteria=chunk.criteria[rows] + segment_criteria,
        heading=heading,
        side=side,
        segment_s=segment_s,
        arrived=arrived,
        num_out_of_coverage=num_out_of_coverage + int(dropped.sum()),
    )

    if context.land_mask is not None:
        lons, lats = sample_along_geodesic(
            lon=lon,
            lat=lat,
            azimuth_degrees=course,
            distance_meters=distance,
            num_samples=context.land_check_samples,
        )
        on_land = context.land_mask.crosses(lons, lats) & ~dropped
        batch.num_on_land = int(on_land.sum())
        dropped |= on_land

    return batch.subset(~dropped)


def replay_route(route: Route, context: ExpansionContext) -> tuple:
    """Re-sail the headings of a route with its segment durations.

    Starts at the first way point and uses the same velocity model as the
    expansion kernel.

    Returns
    -------
    tuple
        Arrays (lon, lat) of the replayed positions, including the start.

    Raises
    ------
    OutOfCoverage
        If a segment starts outside the environment coverage.
    """
    lons = [float(route.way_points[0].lon)]
    lats = [float(route.way_points[0].lat)]
    side = np.zeros(1, dtype=np.int8)
    for way_point, heading, duration in zip(
        route.way_points[:-1], route.headings, route.segment_durations_seconds
    ):
        time = np.datetime64(way_point.time, "ns")
        wind_u, wind_v, current_u, current_v, covered = sample_environment(
            context.field, np.array([lons[-1]]), np.array([lats[-1]]), np.array([time])
        )
        if not covered[0]:
            raise OutOfCoverage(f"Segment starting at {time} is not covered.")
        ground_u, ground_v, _, side = ground_velocity(
            context,
            wind_u=wind_u,
            wind_v=wind_v,
            current_u=current_u,
            current_v=current_v,
            heading=np.array([heading], dtype=float),
            parent_side=side,
        )
        lon_new, lat_new = move_fwd(
            lon=np.array([lons[-1]]),
            lat=np.array([lats[-1]]),
            azimuth_degrees=direction_from_uv(ground_u, ground_v),
            distance_meters=np.hypot(ground_u, ground_v) * duration,
        )
        lons.append(float(np.asarray(lon_new)[0]))
        lats.append(float(np.asarray(lat_new)[0]))
    return np.array(lons), np.array(lats)
