from __future__ import annotations

from typing import Iterable

import numpy as np
import shapely
from shapely.geometry import Polygon, box


class LandMask:
    """Land given as polygons with x=lon and y=lat.

    Parameters
    ----------
    geometry : shapely geometry
        Polygon or MultiPolygon (or any other area geometry) covering land.
    """

    def __init__(self, geometry=None):
        self.geometry = geometry
        shapely.prepare(self.geometry)

    def __repr__(self):
        return f"LandMask(bounds={self.geometry.bounds})"

    @classmethod
    def from_polygons(cls, polygons: Iterable = None) -> LandMask:
        """Union of polygons or of sequences of (lon, lat) vertices."""
        geometries = [p if isinstance(p, Polygon) else Polygon(p) for p in polygons]
        return cls(shapely.union_all(geometries))

    @classmethod
    def from_bounds(
        cls,
        lon_min: float = None,
        lat_min: float = None,
        lon_max: float = None,
        lat_max: float = None,
    ) -> LandMask:
        """Single rectangular island."""
        return cls(box(lon_min, lat_min, lon_max, lat_max))

    def contains(self, lons, lats) -> np.ndarray:
        """Whether points are on land, boundary included."""
        lons, lats = np.broadcast_arrays(
            np.asarray(lons, dtype=float), np.asarray(lats, dtype=float)
        )
        return shapely.intersects_xy(self.geometry, lons, lats)

    def crosses(self, lons, lats) -> np.ndarray:
        """Whether polylines touch land.

        Parameters
        ----------
        lons, lats : array-like
            Shape (n_lines, n_vertices) with at least two vertices per line.

        Returns
        -------
        np.ndarray
            Boolean array of shape (n_lines,).
        """
        lons = np.atleast_2d(np.asarray(lons, dtype=float))
        lats = np.atleast_2d(np.asarray(lats, dtype=float))
        if lons.shape[0] == 0:
            return np.zeros(0, dtype=bool)
        lines = shapely.linestrings(np.stack([lons, lats], axis=-1))
        return shapely.intersects(self.geometry, lines)
