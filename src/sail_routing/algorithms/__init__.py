"""Algorithm building blocks layer: Isochrone expansion and Pareto filtering."""

from .isochrones import (
    HistoryArena,
    Frontier,
    FrontierChunk,
    CandidateBatch,
    ExpansionContext,
    heading_grid,
    wind_angle_and_side,
    ground_velocity,
    split_frontier,
    expand_chunk,
    replay_route,
)
from .dominance import (
    SectorBinner,
    CellArchive,
    group_by_cell,
    progress_values,
    revisit_columns,
    filter_candidates,
    terminal_front,
)
from .reconstruction import reconstruct_route, reconstruct_routes, sort_by_criteria

__all__ = [
    "HistoryArena",
    "Frontier",
    "FrontierChunk",
    "CandidateBatch",
    "ExpansionContext",
    "heading_grid",
    "wind_angle_and_side",
    "ground_velocity",
    "split_frontier",
    "expand_chunk",
    "replay_route",
    "SectorBinner",
    "CellArchive",
    "group_by_cell",
    "progress_values",
    "revisit_columns",
    "filter_candidates",
    "terminal_front",
    "reconstruct_route",
    "reconstruct_routes",
    "sort_by_criteria",
]
