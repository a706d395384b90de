"""Criteria vectors, segment risk and the dominance comparator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .config import OBJECTIVES, RISK_DEFAULT, RiskModel


@dataclass(frozen=True)
class CriteriaVector:
    """Objectives accumulated along a route.

    Attributes
    ----------
    time_seconds : float
        Elapsed time.
    distance_meters : float
        Great-circle distance travelled over ground.
    risk : float
        Accumulated exposure risk, see `segment_risk`.
    """

    time_seconds: float = 0.0
    distance_meters: float = 0.0
    risk: float = 0.0

    def __add__(self, other: CriteriaVector) -> CriteriaVector:
        return CriteriaVector(
            time_seconds=self.time_seconds + other.time_seconds,
            distance_meters=self.distance_meters + other.distance_meters,
            risk=self.risk + other.risk,
        )

    def as_array(self) -> np.ndarray:
        return np.array([self.time_seconds, self.distance_meters, self.risk])

    @classmethod
    def from_array(cls, values) -> CriteriaVector:
        time_seconds, distance_meters, risk = (float(v) for v in values)
        return cls(time_seconds=time_seconds, distance_meters=distance_meters, risk=risk)

    def dominates(self, other: CriteriaVector) -> bool:
        """Dominance over all three objectives."""
        return bool(dominates(self.as_array(), other.as_array()))


ZERO_CRITERIA = CriteriaVector()


def dominates(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Whether a dominates b along the last axis.

    a dominates b iff a <= b in every component and a < b in at least one.
    Broadcasts over leading axes.
    """
    a = np.asarray(a)
    b = np.asarray(b)
    return np.all(a <= b, axis=-1) & np.any(a < b, axis=-1)


def segment_risk(
    wind_speed_ms=0.0,
    duration_seconds=0.0,
    risk: RiskModel = RISK_DEFAULT,
):
    """Risk accumulated while sailing ``duration_seconds`` in a given wind.

    Monotonically increasing with wind speed past the safe wind speed and
    zero below it. Vectorised over numpy arrays.
    """
    excess = np.maximum(np.asarray(wind_speed_ms) - risk.safe_wind_speed_ms, 0.0)
    rate_per_hour = (excess / risk.reference_wind_speed_ms) ** risk.exponent
    return rate_per_hour * np.asarray(duration_seconds) / 3600.0


class DominanceComparator:
    """Dominance restricted to a fixed selection of objectives.

    The selection is fixed at construction; all comparisons are numpy
    broadcasts over the selected criteria columns.

    Parameters
    ----------
    objectives : sequence of str
        Subset of ``("time", "distance", "risk")``.
    """

    def __init__(self, objectives: Sequence[str] = OBJECTIVES):
        objectives = tuple(objectives)
        unknown = [o for o in objectives if o not in OBJECTIVES]
        if not objectives or unknown or len(set(objectives)) != len(objectives):
            raise ValueError(
                f"Objectives must be a non-empty unique subset of {OBJECTIVES}, "
                f"got {objectives}."
            )
        self.objectives = objectives
        self.columns = np.array([OBJECTIVES.index(o) for o in objectives])

    def __repr__(self):
        return f"DominanceComparator(objectives={self.objectives!r})"

    def select(self, criteria: np.ndarray) -> np.ndarray:
        """Tracked columns of an (n, 3) criteria array."""
        return np.asarray(criteria)[..., self.columns]

    def dominates(self, a, b) -> np.ndarray:
        if isinstance(a, CriteriaVector):
            a = a.as_array()
        if isinstance(b, CriteriaVector):
            b = b.as_array()
        return dominates(self.select(a), self.select(b))

    def dominated_by_any(self, candidates: np.ndarray, others: np.ndarray) -> np.ndarray:
        """For each candidate row, whether any row of others dominates it."""
        return dominated_by_any(
            self.select(np.atleast_2d(candidates)), self.select(np.atleast_2d(others))
        )

    def non_dominated_mask(self, criteria: np.ndarray) -> np.ndarray:
        """Mask of the Pareto set of the rows of criteria (tracked columns only)."""
        return non_dominated_mask(self.select(np.atleast_2d(criteria)))


def dominated_by_any(candidates: np.ndarray, others: np.ndarray) -> np.ndarray:
    """For each row of candidates, whether any row of others dominates it."""
    candidates = np.atleast_2d(candidates)
    others = np.atleast_2d(others)
    if others.shape[0] == 0 or candidates.shape[0] == 0:
        return np.zeros(candidates.shape[0], dtype=bool)
    return dominates(others[None, :, :], candidates[:, None, :]).any(axis=1)


def non_dominated_mask(values: np.ndarray) -> np.ndarray:
    """Mask of the Pareto set of the rows of values.

    Identical rows do not dominate each other; of such duplicates only the
    first row is kept.
    """
    values = np.atleast_2d(values)
    if values.shape[0] == 0:
        return np.zeros(0, dtype=bool)
    dominated = dominates(values[None, :, :], values[:, None, :]).any(axis=1)
    equal = np.all(values[None, :, :] == values[:, None, :], axis=-1)
    earlier_duplicate = np.tril(equal, k=-1).any(axis=1)
    return ~(dominated | earlier_duplicate)
