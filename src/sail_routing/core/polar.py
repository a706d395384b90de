"""Boat performance from a polar table.

A polar table maps (true wind speed, true wind angle) to boat speed. Angles
are symmetric: port and starboard share the same row, so any angle is folded
into [0, 180] before lookup.
"""

from __future__ import annotations

from typing import Iterable, Mapping

import numpy as np
import pandas as pd
from scipy.interpolate import RegularGridInterpolator

from .geodesics import _ureg


class InvalidPolarData(ValueError):
    """Raised if a polar table is empty, malformed or physically impossible."""

    pass


def fold_wind_angle(wind_angle_degrees):
    """Fold any wind angle into [0, 180] using port/starboard symmetry."""
    return np.abs(np.mod(np.asarray(wind_angle_degrees, dtype=float) + 180.0, 360.0) - 180.0)


def _to_ms(values, speed_unit: str):
    return (np.asarray(values, dtype=float) * _ureg(speed_unit)).to(
        _ureg.meter_per_second
    ).magnitude


def _pad_singleton(axis: np.ndarray) -> np.ndarray:
    """Make a one-point axis interpolable; values are duplicated alongside."""
    if axis.size == 1:
        return np.array([axis[0], axis[0] + 1.0])
    return axis


class PolarTable:
    """Boat speed as a function of wind speed and wind angle.

    Parameters
    ----------
    wind_angles_degrees : array-like
        Strictly increasing wind angles within [0, 180].
    wind_speeds_ms : array-like
        Strictly increasing, non-negative true wind speeds in m/s.
    boat_speeds_ms : array-like
        Boat speeds in m/s, shape (len(wind_angles_degrees), len(wind_speeds_ms)).

    Raises
    ------
    InvalidPolarData
        If the table is empty, shapes do not match, angles or wind speeds are
        not strictly increasing or out of range, or boat speeds are negative
        or not finite.
    """

    def __init__(self, wind_angles_degrees, wind_speeds_ms, boat_speeds_ms):
        angles = np.asarray(wind_angles_degrees, dtype=float).ravel()
        wind_speeds = np.asarray(wind_speeds_ms, dtype=float).ravel()
        boat_speeds = np.asarray(boat_speeds_ms, dtype=float)

        if angles.size == 0 or wind_speeds.size == 0 or boat_speeds.size == 0:
            raise InvalidPolarData("Polar table is empty.")
        if boat_speeds.shape != (angles.size, wind_speeds.size):
            raise InvalidPolarData(
                f"Boat speeds of shape {boat_speeds.shape} do not match "
                f"{angles.size} angles and {wind_speeds.size} wind speeds."
            )
        if not np.all(np.isfinite(angles)) or np.any(np.diff(angles) <= 0):
            raise InvalidPolarData("Wind angles must be strictly increasing.")
        if angles[0] < 0.0 or angles[-1] > 180.0:
            raise InvalidPolarData("Wind angles must lie within [0, 180] degrees.")
        if not np.all(np.isfinite(wind_speeds)) or np.any(np.diff(wind_speeds) <= 0):
            raise InvalidPolarData("Wind speeds must be strictly increasing.")
        if wind_speeds[0] < 0.0:
            raise InvalidPolarData("Wind speed can't be negative.")
        if not np.all(np.isfinite(boat_speeds)):
            raise InvalidPolarData("Boat speeds must be finite.")
        if np.any(boat_speeds < 0.0):
            raise InvalidPolarData("Boat speed can't be negative.")

        self.wind_angles_degrees = angles
        self.wind_speeds_ms = wind_speeds
        self.boat_speeds_ms = boat_speeds
        for array in (self.wind_angles_degrees, self.wind_speeds_ms, self.boat_speeds_ms):
            array.flags.writeable = False

        values = boat_speeds
        if angles.size == 1:
            values = np.concatenate([values, values], axis=0)
        if wind_speeds.size == 1:
            values = np.concatenate([values, values], axis=1)
        self._interpolator = RegularGridInterpolator(
            (_pad_singleton(angles), _pad_singleton(wind_speeds)),
            values,
            method="linear",
            bounds_error=False,
            fill_value=None,
        )

    def __repr__(self):
        return (
            f"PolarTable({self.wind_angles_degrees.size} angles x "
            f"{self.wind_speeds_ms.size} wind speeds, "
            f"max {self.max_speed_ms:.2f} m/s)"
        )

    @classmethod
    def from_rows(cls, rows: Iterable, speed_unit: str = "knot") -> PolarTable:
        """Construct from rows of (wind angle, wind speed, boat speed).

        Wind and boat speeds are given in ``speed_unit`` (any pint unit).
        Every (angle, wind speed) combination needs exactly one row.
        """
        frame = pd.DataFrame(list(rows), columns=["angle", "wind_speed", "boat_speed"])
        if frame.empty:
            raise InvalidPolarData("Polar table is empty.")
        if frame.duplicated(subset=["angle", "wind_speed"]).any():
            raise InvalidPolarData("Duplicate (angle, wind speed) rows in polar table.")
        grid = frame.pivot(index="angle", columns="wind_speed", values="boat_speed")
        grid = grid.sort_index(axis=0).sort_index(axis=1)
        if grid.isnull().to_numpy().any():
            raise InvalidPolarData("Polar table does not cover a full angle x speed grid.")
        return cls(
            wind_angles_degrees=grid.index.to_numpy(dtype=float),
            wind_speeds_ms=_to_ms(grid.columns.to_numpy(dtype=float), speed_unit),
            boat_speeds_ms=_to_ms(grid.to_numpy(dtype=float), speed_unit),
        )

    @classmethod
    def from_nested_dict(
        cls, polar: Mapping, speed_unit: str = "knot"
    ) -> PolarTable:
        """Construct from ``{wind_speed: {wind_angle: boat_speed}}``."""
        return cls.from_rows(
            (
                (angle, wind_speed, boat_speed)
                for wind_speed, by_angle in polar.items()
                for angle, boat_speed in by_angle.items()
            ),
            speed_unit=speed_unit,
        )

    @property
    def max_speed_ms(self) -> float:
        """Maximum boat speed in the table."""
        return float(self.boat_speeds_ms.max())

    def speed(self, wind_speed_ms, wind_angle_degrees):
        """Boat speed in m/s.

        Parameters
        ----------
        wind_speed_ms : float or array-like
            True wind speed in m/s.
        wind_angle_degrees : float or array-like
            Wind angle relative to the heading; folded into [0, 180].

        Returns
        -------
        float or np.ndarray
            Bilinearly interpolated boat speed. Queries outside the table are
            clamped to the nearest row or column.
        """
        wind_speed_ms, wind_angle_degrees = np.broadcast_arrays(
            np.asarray(wind_speed_ms, dtype=float),
            fold_wind_angle(wind_angle_degrees),
        )
        angles = np.clip(
            wind_angle_degrees, self.wind_angles_degrees[0], self.wind_angles_degrees[-1]
        )
        speeds = np.clip(wind_speed_ms, self.wind_speeds_ms[0], self.wind_speeds_ms[-1])
        boat_speed = self._interpolator(np.stack([angles, speeds], axis=-1))
        boat_speed = np.maximum(np.reshape(boat_speed, angles.shape), 0.0)
        if boat_speed.ndim == 0:
            return float(boat_speed)
        return boat_speed
