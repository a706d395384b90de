"""Pareto filtering of expansion candidates.

Candidates are only comparable within the same bearing sector around the
start. Within a sector the tracked objectives are compared together with the
distance from the start: a candidate only prunes another one if it is at
least as far out, no worse in every tracked objective and strictly better
somewhere. Distance sailed enters as the excess over the distance from the
start, so covering more ground is not held against the boat that got farther.
The outermost candidate of a sector is never pruned by a candidate of the
same step, which keeps the isochrone growing sideways around obstacles.
"""

from __future__ import annotations

from typing import Dict, Iterator, Tuple

import numpy as np

from ..core.criteria import DominanceComparator, dominated_by_any, non_dominated_mask
from ..core.geodesics import get_azimuth_and_distance


class SectorBinner:
    """Bearing sectors of equal width around the start.

    Parameters
    ----------
    lon_start, lat_start : float
        Start of the journey.
    sector_width_degrees : float
        Angular width of the sectors.
    """

    def __init__(
        self,
        lon_start: float = None,
        lat_start: float = None,
        sector_width_degrees: float = None,
    ):
        if not 0 < sector_width_degrees <= 360:
            raise ValueError(
                f"Sector width must be in (0, 360] degrees, got {sector_width_degrees}."
            )
        self.lon_start = float(lon_start)
        self.lat_start = float(lat_start)
        self.sector_width_degrees = float(sector_width_degrees)

    def __repr__(self):
        return f"SectorBinner(sector_width_degrees={self.sector_width_degrees})"

    @property
    def num_sectors(self) -> int:
        return int(np.ceil(360.0 / self.sector_width_degrees))

    def locate(self, lons, lats) -> tuple:
        """Sector index and distance from the start in meters of each point.

        The start itself has no bearing and falls into sector 0.
        """
        lons = np.atleast_1d(np.asarray(lons, dtype=float))
        lats = np.atleast_1d(np.asarray(lats, dtype=float))
        azimuth, radius = get_azimuth_and_distance(
            lon_start=np.full(lons.shape, self.lon_start),
            lat_start=np.full(lats.shape, self.lat_start),
            lon_end=lons,
            lat_end=lats,
        )
        radius = np.asarray(radius, dtype=float)
        sectors = np.floor(np.where(radius > 0, azimuth, 0.0) / self.sector_width_degrees)
        return np.mod(sectors.astype(np.int64), self.num_sectors), radius


def group_by_cell(cells: np.ndarray) -> Iterator[Tuple[int, np.ndarray]]:
    """Yield (cell, rows) with rows in ascending order, cells in sorted order."""
    cells = np.ravel(cells)
    if len(cells) == 0:
        return
    unique, inverse = np.unique(cells, return_inverse=True)
    inverse = np.ravel(inverse)
    order = np.argsort(inverse, kind="stable")
    bounds = np.flatnonzero(np.diff(inverse[order])) + 1
    for cell, rows in zip(unique, np.split(order, bounds)):
        yield int(cell), rows


def progress_values(
    comparator: DominanceComparator, criteria: np.ndarray, radius_meters: np.ndarray
) -> np.ndarray:
    """Values compared within a sector, all to be minimized.

    The tracked objectives, with distance sailed replaced by its excess over
    the distance from the start, followed by the negated distance from the
    start.
    """
    radius = np.ravel(np.asarray(radius_meters, dtype=float))
    criteria = np.array(np.reshape(criteria, (-1, 3)), dtype=float)
    criteria[:, 1] -= radius
    return np.column_stack([comparator.select(criteria), -radius])


def revisit_columns(comparator: DominanceComparator) -> np.ndarray:
    """Columns of `progress_values` compared against earlier frontiers.

    Elapsed time is left out: an earlier frontier point never beats a later
    one just by being earlier, so a boat waiting for wind is kept.
    """
    columns = [i for i, name in enumerate(comparator.objectives) if name != "time"]
    return np.array(columns + [len(comparator.objectives)], dtype=np.int64)


class CellArchive:
    """Non-dominated progress values of all earlier frontier points per sector.

    Parameters
    ----------
    columns : np.ndarray, optional
        Columns of the progress values kept and compared, all by default.
    """

    def __init__(self, columns: np.ndarray = None):
        self.columns = None if columns is None else np.asarray(columns, dtype=np.int64)
        self._cells: Dict[int, np.ndarray] = {}

    def __len__(self):
        return len(self._cells)

    def __repr__(self):
        return f"CellArchive(cells={len(self)}, points={self.num_points})"

    @property
    def num_points(self) -> int:
        return sum(len(values) for values in self._cells.values())

    def _select(self, values: np.ndarray) -> np.ndarray:
        values = np.atleast_2d(values)
        return values if self.columns is None else values[:, self.columns]

    def dominated(self, cells: np.ndarray, values: np.ndarray) -> np.ndarray:
        """Whether an archived point of the same cell dominates each row."""
        values = self._select(values)
        mask = np.zeros(len(values), dtype=bool)
        for cell, rows in group_by_cell(cells):
            archived = self._cells.get(cell)
            if archived is not None:
                mask[rows] = dominated_by_any(values[rows], archived)
        return mask

    def add(self, cells: np.ndarray, values: np.ndarray):
        """Archive points; only the Pareto set of each cell is retained."""
        values = self._select(values)
        for cell, rows in group_by_cell(cells):
            archived = self._cells.get(cell)
            stacked = values[rows] if archived is None else np.vstack([archived, values[rows]])
            self._cells[cell] = stacked[non_dominated_mask(stacked)]


def filter_candidates(
    criteria: np.ndarray = None,
    cells: np.ndarray = None,
    radius_meters: np.ndarray = None,
    comparator: DominanceComparator = None,
    archive: CellArchive = None,
    max_frontier_size: int = None,
    remaining_meters: np.ndarray = None,
) -> np.ndarray:
    """Select the candidates forming the next frontier.

    Parameters
    ----------
    criteria : np.ndarray
        Accumulated criteria of shape (n, 3).
    cells : np.ndarray
        Sector index of each candidate, see `SectorBinner.locate`.
    radius_meters : np.ndarray
        Distance from the start of each candidate.
    comparator : DominanceComparator
        Selection of tracked objectives.
    archive : CellArchive, optional
        Earlier frontier points. Candidates dominated by an archived point of
        their sector are dropped, and survivors are added to the archive.
    max_frontier_size : int, optional
        Keep at most this many candidates, the ones closest to the
        destination (stable with respect to candidate order).
    remaining_meters : np.ndarray, optional
        Distance from each candidate to the destination. Required with
        max_frontier_size.

    Returns
    -------
    np.ndarray
        Boolean mask of surviving candidates.
    """
    cells = np.ravel(cells)
    values = progress_values(comparator, criteria, radius_meters)
    keep = np.zeros(len(values), dtype=bool)
    for _, rows in group_by_cell(cells):
        keep[rows] = non_dominated_mask(values[rows])

    if archive is not None:
        survivors = np.flatnonzero(keep)
        keep[survivors] = ~archive.dominated(cells[survivors], values[survivors])

    if max_frontier_size is not None and keep.sum() > max_frontier_size:
        if remaining_meters is None:
            raise ValueError("Capping the frontier needs the remaining distances.")
        survivors = np.flatnonzero(keep)
        order = np.argsort(np.ravel(remaining_meters)[survivors], kind="stable")
        keep[:] = False
        keep[survivors[order[:max_frontier_size]]] = True

    if archive is not None:
        archive.add(cells[keep], values[keep])
    return keep


def terminal_front(criteria: np.ndarray, comparator: DominanceComparator) -> np.ndarray:
    """Mask of non-dominated arrivals over the tracked objectives (no binning)."""
    return comparator.non_dominated_mask(np.reshape(criteria, (-1, 3)))
