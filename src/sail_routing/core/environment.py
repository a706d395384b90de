"""Wind and current fields.

All vectors are eastward / northward components in m/s of the velocity the
air or water moves *towards*.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple, runtime_checkable

import numpy as np
import xarray as xr

from .geodesics import direction_from_uv
from .routes import Position


class OutOfCoverage(LookupError):
    """Raised if a field is sampled outside its spatial or temporal bounds."""

    pass


@dataclass(frozen=True)
class EnvironmentSample:
    """Wind and current at one position and time."""

    wind_u: float = 0.0
    wind_v: float = 0.0
    current_u: float = 0.0
    current_v: float = 0.0

    @property
    def wind_speed_ms(self) -> float:
        return float(np.hypot(self.wind_u, self.wind_v))

    @property
    def wind_direction_degrees(self) -> float:
        """Direction the wind blows towards."""
        return float(direction_from_uv(self.wind_u, self.wind_v))

    @property
    def current_speed_ms(self) -> float:
        return float(np.hypot(self.current_u, self.current_v))

    @property
    def wind_over_water(self) -> Tuple[float, float]:
        """Wind relative to the water mass (wind minus current)."""
        return self.wind_u - self.current_u, self.wind_v - self.current_v


@runtime_checkable
class EnvironmentField(Protocol):
    """Anything that can be sampled for wind and current."""

    def sample(self, position: Position, time: np.datetime64) -> EnvironmentSample:
        """Sample at position and time; raise OutOfCoverage outside bounds."""


def sample_environment(field, lons, lats, times) -> tuple:
    """Sample a field at many points.

    Uses ``field.sample_many`` when the field provides it and otherwise
    loops over ``field.sample``.

    Returns
    -------
    tuple
        Arrays (wind_u, wind_v, current_u, current_v, covered). Uncovered
        points carry zeros and ``covered=False``.
    """
    lons = np.atleast_1d(np.asarray(lons, dtype=float))
    lats = np.atleast_1d(np.asarray(lats, dtype=float))
    times = np.broadcast_to(np.asarray(times, dtype="datetime64[ns]"), lons.shape)
    if hasattr(field, "sample_many"):
        return field.sample_many(lons, lats, times)

    values = np.zeros((4, lons.size))
    covered = np.zeros(lons.size, dtype=bool)
    for n, (lon, lat, time) in enumerate(zip(lons, lats, times)):
        try:
            sample = field.sample(Position(lon=float(lon), lat=float(lat)), time)
        except OutOfCoverage:
            continue
        values[:, n] = (sample.wind_u, sample.wind_v, sample.current_u, sample.current_v)
        covered[n] = True
    return values[0], values[1], values[2], values[3], covered


class UniformField:
    """Constant wind and current, optionally limited in space and time.

    Parameters
    ----------
    wind_u, wind_v : float
        Wind components in m/s.
    current_u, current_v : float
        Current components in m/s.
    lon_bounds, lat_bounds : tuple, optional
        (min, max) of the covered area in degrees.
    time_range : tuple, optional
        (start, end) of the covered period.
    """

    def __init__(
        self,
        wind_u: float = 0.0,
        wind_v: float = 0.0,
        current_u: float = 0.0,
        current_v: float = 0.0,
        lon_bounds: tuple = None,
        lat_bounds: tuple = None,
        time_range: tuple = None,
    ):
        self.wind_u = float(wind_u)
        self.wind_v = float(wind_v)
        self.current_u = float(current_u)
        self.current_v = float(current_v)
        self.lon_bounds = lon_bounds
        self.lat_bounds = lat_bounds
        self.time_range = (
            None
            if time_range is None
            else tuple(np.datetime64(t, "ns") for t in time_range)
        )

    def __repr__(self):
        return (
            f"UniformField(wind=({self.wind_u}, {self.wind_v}), "
            f"current=({self.current_u}, {self.current_v}))"
        )

    def covers(self, lons, lats, times) -> np.ndarray:
        lons = np.asarray(lons, dtype=float)
        lats = np.asarray(lats, dtype=float)
        covered = np.ones(np.broadcast(lons, lats).shape, dtype=bool)
        if self.lon_bounds is not None:
            covered &= (lons >= self.lon_bounds[0]) & (lons <= self.lon_bounds[1])
        if self.lat_bounds is not None:
            covered &= (lats >= self.lat_bounds[0]) & (lats <= self.lat_bounds[1])
        if self.time_range is not None:
            times = np.asarray(times, dtype="datetime64[ns]")
            covered &= (times >= self.time_range[0]) & (times <= self.time_range[1])
        return covered

    def sample(self, position: Position, time: np.datetime64) -> EnvironmentSample:
        if not self.covers(position.lon, position.lat, time):
            raise OutOfCoverage(f"{position} at {time} is outside of {self}.")
        return EnvironmentSample(
            wind_u=self.wind_u,
            wind_v=self.wind_v,
            current_u=self.current_u,
            current_v=self.current_v,
        )

    def sample_many(self, lons, lats, times) -> tuple:
        covered = self.covers(lons, lats, times)
        return (
            np.where(covered, self.wind_u, 0.0),
            np.where(covered, self.wind_v, 0.0),
            np.where(covered, self.current_u, 0.0),
            np.where(covered, self.current_v, 0.0),
            covered,
        )


def prepare_winds(
    ds: xr.Dataset = None,
    lon_name: str = "longitude",
    lat_name: str = "latitude",
    time_name: str = "time",
    uw_name: str = "eastward_wind",
    vw_name: str = "northward_wind",
) -> xr.Dataset:
    """Rename wind data to standard names (lon, lat, time, uw, vw)."""
    return _rename_present(
        ds,
        {lon_name: "lon", lat_name: "lat", time_name: "time", uw_name: "uw", vw_name: "vw"},
    )


def prepare_currents(
    ds: xr.Dataset = None,
    lon_name: str = "longitude",
    lat_name: str = "latitude",
    time_name: str = "time",
    uo_name: str = "uo",
    vo_name: str = "vo",
) -> xr.Dataset:
    """Rename current data to standard names (lon, lat, time, uo, vo)."""
    return _rename_present(
        ds,
        {lon_name: "lon", lat_name: "lat", time_name: "time", uo_name: "uo", vo_name: "vo"},
    )


def _rename_present(ds: xr.Dataset, names: dict) -> xr.Dataset:
    names = {
        old: new
        for old, new in names.items()
        if old != new and (old in ds.variables or old in ds.dims)
    }
    return ds.rename(names)


def _drop_static_time(ds: xr.Dataset) -> xr.Dataset:
    """Datasets with a single time slice are treated as constant in time."""
    if "time" in ds.dims and ds.sizes["time"] == 1:
        return ds.isel(time=0, drop=True)
    return ds


def _interp_points(ds: xr.Dataset, lons, lats, times) -> xr.Dataset:
    coords = {
        "lon": xr.DataArray(lons, dims=("points",)),
        "lat": xr.DataArray(lats, dims=("points",)),
    }
    if "time" in ds.dims:
        coords["time"] = xr.DataArray(times, dims=("points",))
    return ds.interp(coords, method="linear")


class DatasetField:
    """Wind (and optionally current) field backed by xarray datasets.

    Parameters
    ----------
    winds : xr.Dataset
        Dataset with coordinates lon, lat (and optionally time) and
        variables uw, vw. Use `prepare_winds` to rename source data.
    currents : xr.Dataset, optional
        Dataset with coordinates lon, lat (and optionally time) and variables
        uo, vo. Use `prepare_currents` to rename source data. Missing or
        NaN currents count as zero current.

    Points outside the coordinate bounds of the winds or with NaN wind are
    out of coverage.
    """

    def __init__(self, winds: xr.Dataset = None, currents: xr.Dataset = None):
        missing = {"lon", "lat", "uw", "vw"} - set(winds.variables)
        if missing:
            raise ValueError(f"Wind dataset lacks {sorted(missing)}.")
        self.winds = _drop_static_time(winds[["uw", "vw"]])
        if currents is not None:
            missing = {"lon", "lat", "uo", "vo"} - set(currents.variables)
            if missing:
                raise ValueError(f"Current dataset lacks {sorted(missing)}.")
            currents = _drop_static_time(currents[["uo", "vo"]])
        self.currents = currents

    def __repr__(self):
        return f"DatasetField(winds={dict(self.winds.sizes)}, currents={self.currents is not None})"

    def sample(self, position: Position, time: np.datetime64) -> EnvironmentSample:
        wind_u, wind_v, current_u, current_v, covered = self.sample_many(
            np.array([position.lon]),
            np.array([position.lat]),
            np.array([time], dtype="datetime64[ns]"),
        )
        if not covered[0]:
            raise OutOfCoverage(f"{position} at {time} is outside of {self}.")
        return EnvironmentSample(
            wind_u=float(wind_u[0]),
            wind_v=float(wind_v[0]),
            current_u=float(current_u[0]),
            current_v=float(current_v[0]),
        )

    def sample_many(self, lons, lats, times) -> tuple:
        lons = np.atleast_1d(np.asarray(lons, dtype=float))
        lats = np.atleast_1d(np.asarray(lats, dtype=float))
        times = np.broadcast_to(np.asarray(times, dtype="datetime64[ns]"), lons.shape)

        winds = _interp_points(self.winds, lons, lats, times)
        wind_u = winds.uw.data.astype(float)
        wind_v = winds.vw.data.astype(float)
        covered = np.isfinite(wind_u) & np.isfinite(wind_v)

        if self.currents is not None:
            currents = _interp_points(self.currents, lons, lats, times).fillna(0.0)
            current_u = currents.uo.data.astype(float)
            current_v = currents.vo.data.astype(float)
        else:
            current_u = np.zeros_like(wind_u)
            current_v = np.zeros_like(wind_v)

        return (
            np.where(covered, wind_u, 0.0),
            np.where(covered, wind_v, 0.0),
            np.where(covered, current_u, 0.0),
            np.where(covered, current_v, 0.0),
            covered,
        )
