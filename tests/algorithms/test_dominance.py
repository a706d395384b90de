import numpy as np
import pytest

from sail_routing.algorithms.dominance import (
    CellArchive,
    SectorBinner,
    filter_candidates,
    group_by_cell,
    progress_values,
    revisit_columns,
    terminal_front,
)
from sail_routing.core import DominanceComparator, move_fwd


@pytest.fixture
def binner():
    return SectorBinner(lon_start=0.0, lat_start=0.0, sector_width_degrees=10.0)


def test_binner_sectors(binner):
    lons, lats = move_fwd(
        lon=np.zeros(4),
        lat=np.zeros(4),
        azimuth_degrees=np.array([5.0, 95.0, 185.0, 355.0]),
        distance_meters=np.array([1000.0, 2000.0, 3000.0, 4000.0]),
    )
    sectors, radius = binner.locate(lons, lats)
    assert sectors.tolist() == [0, 9, 18, 35]
    assert np.allclose(radius, [1000.0, 2000.0, 3000.0, 4000.0])


def test_binner_puts_start_in_first_sector(binner):
    sectors, radius = binner.locate(0.0, 0.0)
    assert sectors.tolist() == [0]
    assert radius.tolist() == [0.0]


def test_binner_needs_valid_width():
    with pytest.raises(ValueError):
        SectorBinner(lon_start=0.0, lat_start=0.0, sector_width_degrees=0.0)
    binner = SectorBinner(lon_start=0.0, lat_start=0.0, sector_width_degrees=7.0)
    assert binner.num_sectors == 52


def test_group_by_cell():
    cells = np.array([3, 0, 3, 5])
    groups = {cell: rows.tolist() for cell, rows in group_by_cell(cells)}
    assert groups == {0: [1], 3: [0, 2], 5: [3]}
    assert list(group_by_cell(np.zeros(0, dtype=int))) == []


def test_filter_prunes_within_a_sector_only():
    """The one that sailed more to get equally far goes, elsewhere it stays."""
    criteria = np.array(
        [
            [3600.0, 1000.0, 0.0],
            [3600.0, 1200.0, 0.0],
            [3600.0, 1200.0, 0.0],
        ]
    )
    keep = filter_candidates(
        criteria=criteria,
        cells=np.array([0, 0, 1]),
        radius_meters=np.array([900.0, 900.0, 900.0]),
        comparator=DominanceComparator(),
    )
    assert keep.tolist() == [True, False, True]


def test_filter_keeps_outermost_of_a_sector():
    """Getting farther out is never held against a boat, even if it sailed more."""
    criteria = np.array([[3600.0, 1000.0, 0.0], [3600.0, 2600.0, 0.0]])
    keep = filter_candidates(
        criteria=criteria,
        cells=np.zeros(2, dtype=int),
        radius_meters=np.array([800.0, 2500.0]),
        comparator=DominanceComparator(),
    )
    assert keep.tolist() == [False, True]


def test_filter_keeps_lower_risk_trade_off():
    criteria = np.array([[3600.0, 1000.0, 0.0], [3600.0, 1000.0, 0.5]])
    keep = filter_candidates(
        criteria=criteria,
        cells=np.zeros(2, dtype=int),
        radius_meters=np.array([800.0, 1000.0]),
        comparator=DominanceComparator(),
    )
    assert keep.tolist() == [True, True]


def test_filter_collapses_duplicates_to_first():
    criteria = np.array([[3600.0, 1000.0, 0.0]] * 3)
    keep = filter_candidates(
        criteria=criteria,
        cells=np.zeros(3, dtype=int),
        radius_meters=np.full(3, 1000.0),
        comparator=DominanceComparator(),
    )
    assert keep.tolist() == [True, False, False]


def test_filter_with_archive_prunes_revisits():
    """Coming back into a sector later without getting farther out is pruned."""
    comparator = DominanceComparator()
    archive = CellArchive(columns=revisit_columns(comparator))
    keep = filter_candidates(
        criteria=np.array([[3600.0, 5000.0, 0.0]]),
        cells=np.array([0]),
        radius_meters=np.array([5000.0]),
        comparator=comparator,
        archive=archive,
    )
    assert keep.tolist() == [True]
    assert len(archive) == 1

    keep = filter_candidates(
        criteria=np.array(
            [
                [7200.0, 9000.0, 0.0],  # back in the same sector, not as far out
                [7200.0, 9000.0, 0.1],  # same sector, farther out but riskier
                [7200.0, 9000.0, 0.0],  # new sector
            ]
        ),
        cells=np.array([0, 0, 1]),
        radius_meters=np.array([4000.0, 8000.0, 4000.0]),
        comparator=comparator,
        archive=archive,
    )
    assert keep.tolist() == [False, True, True]
    assert len(archive) == 2


def test_archive_keeps_boats_waiting_in_place():
    """An earlier visit does not win on elapsed time alone."""
    comparator = DominanceComparator()
    archive = CellArchive(columns=revisit_columns(comparator))
    archive.add(np.array([0]), progress_values(comparator, np.zeros((1, 3)), [0.0]))
    for hours in (1.0, 2.0, 3.0):
        keep = filter_candidates(
            criteria=np.array([[hours * 3600.0, 0.0, 0.0]]),
            cells=np.array([0]),
            radius_meters=np.array([0.0]),
            comparator=comparator,
            archive=archive,
        )
        assert keep.tolist() == [True]
    assert archive.num_points == 1


def test_filter_caps_frontier_closest_first():
    criteria = np.array([[3600.0, 1000.0, 0.0]] * 4)
    keep = filter_candidates(
        criteria=criteria,
        cells=np.array([0, 1, 2, 3]),
        radius_meters=np.full(4, 1000.0),
        remaining_meters=np.array([4000.0, 1000.0, 3000.0, 1000.0]),
        comparator=DominanceComparator(),
        max_frontier_size=2,
    )
    assert keep.tolist() == [False, True, False, True]


def test_filter_cap_needs_remaining_distances():
    with pytest.raises(ValueError):
        filter_candidates(
            criteria=np.zeros((2, 3)),
            cells=np.array([0, 1]),
            radius_meters=np.ones(2),
            comparator=DominanceComparator(),
            max_frontier_size=1,
        )


def test_archive_keeps_pareto_set_per_cell():
    archive = CellArchive()
    archive.add(np.array([0, 0]), np.array([[1.0, 1.0], [2.0, 2.0]]))
    assert archive.num_points == 1
    assert archive.dominated(np.array([0, 5]), np.array([[3.0, 3.0], [3.0, 3.0]])).tolist() == [
        True,
        False,
    ]


def test_progress_values_use_tracked_objectives():
    values = progress_values(
        DominanceComparator(("time", "risk")),
        np.array([[1.0, 2.0, 3.0]]),
        np.array([4.0]),
    )
    assert values.tolist() == [[1.0, 3.0, -4.0]]


def test_progress_values_measure_distance_in_excess_of_radius():
    values = progress_values(
        DominanceComparator(), np.array([[10.0, 1500.0, 0.0]]), np.array([1000.0])
    )
    assert values.tolist() == [[10.0, 500.0, 0.0, -1000.0]]


def test_revisit_columns_leave_out_time():
    assert revisit_columns(DominanceComparator()).tolist() == [1, 2, 3]
    assert revisit_columns(DominanceComparator(("time",))).tolist() == [1]
    assert revisit_columns(DominanceComparator(("risk", "time"))).tolist() == [0, 2]


def test_terminal_front():
    criteria = np.array(
        [
            [5.0 * 3600, 100_000.0, 0.0],
            [6.0 * 3600, 90_000.0, 0.0],
            [6.0 * 3600, 100_000.0, 0.0],  # dominated by both above
            [4.5 * 3600, 120_000.0, 2.0],
        ]
    )
    assert terminal_front(criteria, DominanceComparator()).tolist() == [True, True, False, True]
