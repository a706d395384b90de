import numpy as np

from sail_routing.core.land import LandMask


def test_contains():
    land = LandMask.from_bounds(lon_min=0.0, lat_min=0.0, lon_max=1.0, lat_max=1.0)
    assert land.contains(
        np.array([0.5, 1.5, 1.0]), np.array([0.5, 0.5, 0.5])
    ).tolist() == [True, False, True]


def test_crosses():
    """Lines touching the island are flagged even if both ends are at sea."""
    land = LandMask.from_bounds(lon_min=0.0, lat_min=0.0, lon_max=1.0, lat_max=1.0)
    lons = np.array([[-1.0, 2.0], [-1.0, 2.0], [0.2, 0.8]])
    lats = np.array([[0.5, 0.5], [2.0, 2.0], [0.5, 0.5]])
    assert land.crosses(lons, lats).tolist() == [True, False, True]


def test_crosses_with_intermediate_points():
    land = LandMask.from_bounds(lon_min=0.0, lat_min=0.0, lon_max=1.0, lat_max=1.0)
    lons, lats = np.array([[-1.0, 0.5, 2.0]]), np.array([[-1.0, -0.5, -1.0]])
    assert land.crosses(lons, lats).tolist() == [False]


def test_crosses_nothing():
    land = LandMask.from_bounds(lon_min=0.0, lat_min=0.0, lon_max=1.0, lat_max=1.0)
    assert land.crosses(np.zeros((0, 2)), np.zeros((0, 2))).shape == (0,)


def test_from_polygons_unions_islands():
    land = LandMask.from_polygons(
        [
            [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)],
            [(5.0, 5.0), (6.0, 5.0), (6.0, 6.0)],
        ]
    )
    assert land.contains(
        np.array([0.5, 5.9, 3.0]), np.array([0.5, 5.1, 3.0])
    ).tolist() == [True, True, False]
