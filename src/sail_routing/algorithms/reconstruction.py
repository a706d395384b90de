from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from ..core.criteria import CriteriaVector
from ..core.routes import Route, WayPoint, seconds_to_timedelta
from .isochrones import HistoryArena


def reconstruct_route(
    arena: HistoryArena = None, index: int = None, time_start: np.datetime64 = None
) -> Route:
    """Walk predecessor links from index back to the root.

    Way points are the stored positions at absolute times, headings are the
    ones used to reach each way point and the criteria are the accumulated
    criteria at index.
    """
    chain = arena.chain(index)
    times = np.datetime64(time_start, "ns") + seconds_to_timedelta(arena.elapsed_s[chain])
    way_points = tuple(
        WayPoint(lon=float(lon), lat=float(lat), time=time)
        for lon, lat, time in zip(arena.lon[chain], arena.lat[chain], times)
    )
    return Route(
        way_points=way_points,
        headings=tuple(float(h) for h in arena.heading[chain[1:]]),
        criteria=CriteriaVector.from_array(arena.criteria[index]),
    )


def sort_by_criteria(arena: HistoryArena, indices: Iterable) -> np.ndarray:
    """Indices ordered by (time, distance, risk, index)."""
    indices = np.asarray(list(indices), dtype=np.int64)
    if indices.size == 0:
        return indices
    criteria = arena.criteria[indices]
    order = np.lexsort((indices, criteria[:, 2], criteria[:, 1], criteria[:, 0]))
    return indices[order]


def reconstruct_routes(
    arena: HistoryArena = None, indices: Iterable = None, time_start: np.datetime64 = None
) -> Tuple[Route, ...]:
    """Routes to all indices, ordered by (time, distance, risk, index)."""
    return tuple(
        reconstruct_route(arena=arena, index=index, time_start=time_start)
        for index in sort_by_criteria(arena, indices)
    )
