import numpy as np

from sail_routing.algorithms.isochrones import HistoryArena
from sail_routing.algorithms.reconstruction import (
    reconstruct_route,
    reconstruct_routes,
    sort_by_criteria,
)

from conftest import TIME_START


def _arena():
    """Root with two branches, the second one being faster."""
    arena = HistoryArena()
    root = arena.add_root(lon=0.0, lat=1.0)
    (a,) = arena.append(
        lon=0.0, lat=0.9, elapsed_s=3600.0, criteria=[3600.0, 11_000.0, 0.0],
        parent=root, heading=180.0, side=0, segment_s=3600.0, step=1,
    )
    (b,) = arena.append(
        lon=0.0, lat=0.8, elapsed_s=5400.0, criteria=[5400.0, 22_000.0, 0.1],
        parent=a, heading=180.0, side=0, segment_s=1800.0, step=2,
    )
    (c,) = arena.append(
        lon=0.1, lat=0.8, elapsed_s=3600.0, criteria=[3600.0, 25_000.0, 0.0],
        parent=root, heading=150.0, side=1, segment_s=3600.0, step=1,
    )
    return arena, b, c


def test_reconstruct_route_follows_parents():
    arena, b, _ = _arena()
    route = reconstruct_route(arena=arena, index=b, time_start=TIME_START)
    assert len(route) == 3
    assert [wp.lat for wp in route.way_points] == [1.0, 0.9, 0.8]
    assert route.way_points[0].time == TIME_START
    assert route.way_points[-1].time == TIME_START + np.timedelta64(90, "m")
    assert route.headings == (180.0, 180.0)
    assert route.criteria.time_seconds == 5400.0
    assert route.criteria.risk == 0.1


def test_sort_by_criteria():
    arena, b, c = _arena()
    assert sort_by_criteria(arena, [b, c, 1]).tolist() == [1, c, b]
    assert sort_by_criteria(arena, []).size == 0


def test_reconstruct_routes_fastest_first():
    arena, b, c = _arena()
    routes = reconstruct_routes(arena=arena, indices=[b, c], time_start=TIME_START)
    assert [route.criteria.time_seconds for route in routes] == [3600.0, 5400.0]
    assert routes[0].headings == (150.0,)
