from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import logging
import threading
from typing import Any, Tuple

import numpy as np
import pandas as pd

from . import parallel
from .parallel import (
    SequentialExecutor,
    _initialize_worker_process,
    _initialize_worker_thread,
    _initialize_sequential,
    _task_expand,
)
from ..algorithms import (
    CandidateBatch,
    CellArchive,
    ExpansionContext,
    Frontier,
    HistoryArena,
    SectorBinner,
    filter_candidates,
    heading_grid,
    progress_values,
    reconstruct_route,
    reconstruct_routes,
    revisit_columns,
    split_frontier,
    terminal_front,
)
from .config import FatalConfigurationError, RoutingConfig
from ..core.criteria import DominanceComparator
from ..core.environment import sample_environment
from ..core.geodesics import get_distance_meters
from ..core.land import LandMask
from ..core.polar import PolarTable
from ..core.routes import Route, seconds_to_timedelta

STATUS_REACHED = "reached"
STATUS_UNREACHABLE = "unreachable"
STATUS_CANCELLED = "cancelled"


class DestinationUnreachable(RuntimeError):
    """Raised if no route reached the destination within the step budget."""

    pass


class Cancelled(RuntimeError):
    """Raised if a routing run was cancelled before it terminated."""

    pass


@dataclass
class StageLog:
    """Record of a single routing stage event."""

    name: str
    metrics: dict[str, Any]
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )

    def to_record(self) -> dict[str, Any]:
        """Return a flat record with stage, timestamp, and metrics."""
        return {
            "stage": self.name,
            "timestamp": self.timestamp,
            **self.metrics,
        }


@dataclass
class RoutingLog:
    """Configuration and per-stage metrics of a routing run."""

    config: dict[str, Any]
    stages: list[StageLog] = field(default_factory=list)

    def add_stage(self, name: str, **metrics: Any) -> None:
        """Append a stage log entry."""
        self.stages.append(StageLog(name=name, metrics=dict(metrics)))

    def stages_named(self, name: str) -> list[StageLog]:
        """Return all stage logs matching the provided name."""
        return [stage for stage in self.stages if stage.name == name]

    def to_dataframe(self) -> pd.DataFrame:
        """Convert logs to a pandas DataFrame.

        Includes all stages with columns: stage, timestamp, and metric keys.
        """
        records = [s.to_record() for s in self.stages]
        if not records:
            return pd.DataFrame(columns=["stage", "timestamp"])
        df = pd.DataFrame(records)
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
        return df

    def to_dict(self) -> dict[str, Any]:
        """Return log contents as plain dict."""
        return {
            "config": self.config,
            "stages": [
                {
                    "name": stage.name,
                    "metrics": stage.metrics,
                    "timestamp": stage.timestamp,
                }
                for stage in self.stages
            ],
        }


@dataclass
class RoutingResult:
    """Container returned by RoutingApp.run.

    Attributes
    ----------
    status : str
        One of "reached", "unreachable" and "cancelled".
    routes : tuple of Route
        Pareto-optimal routes ordered by (time, distance, risk). For cancelled
        runs without arrivals, routes to the latest frontier ordered by
        remaining distance to the destination.
    frontiers : tuple of Frontier
        All frontiers from the start on.
    arena : HistoryArena
        Every point the frontiers and routes refer to.
    logs : RoutingLog
    """

    status: str
    routes: Tuple[Route, ...] = ()
    frontiers: Tuple[Frontier, ...] = ()
    arena: HistoryArena | None = None
    logs: RoutingLog | None = None

    def raise_for_status(self) -> None:
        """Raise DestinationUnreachable or Cancelled unless the destination was reached."""
        if self.status == STATUS_UNREACHABLE:
            raise DestinationUnreachable(
                f"Destination not reached after {len(self.frontiers) - 1} steps."
            )
        if self.status == STATUS_CANCELLED:
            raise Cancelled(
                f"Routing cancelled after {len(self.frontiers) - 1} steps "
                f"with {len(self.routes)} partial routes."
            )

    @property
    def fastest_route(self) -> Route | None:
        return self.routes[0] if self.routes else None

    @property
    def data_frame(self) -> pd.DataFrame:
        """One row per route with its criteria."""
        return pd.DataFrame(
            [
                {
                    "time_seconds": route.criteria.time_seconds,
                    "distance_meters": route.criteria.distance_meters,
                    "risk": route.criteria.risk,
                    "num_way_points": len(route),
                }
                for route in self.routes
            ],
            columns=["time_seconds", "distance_meters", "risk", "num_way_points"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly summary."""
        return {
            "status": self.status,
            "routes": self.data_frame.to_dict(orient="records"),
            "num_steps": max(len(self.frontiers) - 1, 0),
            "log": self.logs.to_dict() if self.logs else None,
        }


class RoutingApp:
    """High-level orchestrator of the isochrone expansion.

    Parameters
    ----------
    config : RoutingConfig
    polar : PolarTable
        Boat performance.
    field : EnvironmentField
        Wind and current field.
    land_mask : LandMask, optional
        Areas the route must not touch.
    """

    def __init__(
        self,
        config: RoutingConfig = None,
        polar: PolarTable = None,
        field=None,
        land_mask: LandMask = None,
    ):
        self.config = config if config is not None else RoutingConfig()
        self.polar = polar
        self.field = field
        self.land_mask = land_mask
        self.log = RoutingLog(config=asdict(self.config))

    def _create_executor(
        self, *, context: ExpansionContext
    ) -> SequentialExecutor | ThreadPoolExecutor | ProcessPoolExecutor:
        """Create and initialize the executor configured in the isochrone params."""
        params = self.config.isochrone

        # Initialize worker state globals in parallel module
        parallel._WORKER_STATE = None
        parallel._THREAD_LOCAL_STATE = threading.local()
        parallel._SHARED_CONTEXT = None

        if params.executor_type == "sequential":
            if params.num_workers > 1:
                logging.warning(
                    f"Sequential executor requested but num_workers={params.num_workers} > 1. "
                    "Sequential execution will use single thread regardless."
                )
            return SequentialExecutor(
                initializer=_initialize_sequential, initargs=(context,)
            )
        elif params.executor_type == "thread":
            parallel._SHARED_CONTEXT = context
            return ThreadPoolExecutor(
                max_workers=params.num_workers,
                initializer=_initialize_worker_thread,
            )
        elif params.executor_type == "process":
            return ProcessPoolExecutor(
                max_workers=params.num_workers,
                initializer=_initialize_worker_process,
                initargs=(context,),
            )
        else:
            raise FatalConfigurationError(
                f"Unknown executor_type: {params.executor_type}"
            )

    def run(self, cancel_event: threading.Event = None) -> RoutingResult:
        """Expand isochrones until the destination is reached.

        Parameters
        ----------
        cancel_event : threading.Event, optional
            Checked between steps; once set, the run stops with status
            "cancelled" and the best partial front.

        Raises
        ------
        FatalConfigurationError
            If the configuration is invalid, or the start is on land, out of
            coverage or already within the tolerance of the destination.
        """
        self.log = RoutingLog(config=asdict(self.config))
        self._log_stage_metrics("run", message="starting routing run")
        context = self._stage_validation()
        comparator = DominanceComparator(self.config.isochrone.objectives)
        arena, frontier, binner, archive = self._stage_initialization(context, comparator)
        params = self.config.isochrone

        frontiers = [frontier]
        arrivals = []
        first_arrival_step = None
        cancelled = False

        executor = self._create_executor(context=context)
        try:
            for step in range(1, params.max_steps + 1):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                batch = self._stage_expansion(frontier, arena, executor)
                frontier, arrived = self._stage_filtering(
                    step, batch, arena, binner, archive, comparator, context
                )
                frontiers.append(frontier)
                arrivals.append(arrived)
                if first_arrival_step is None and len(arrived):
                    first_arrival_step = step
                if len(frontier) == 0:
                    break
                if (
                    first_arrival_step is not None
                    and step - first_arrival_step >= params.arrival_window_steps
                ):
                    break
        finally:
            # Clean up executor (GC would handle this, but be explicit)
            executor.shutdown()

        arrivals = np.concatenate(arrivals) if arrivals else np.zeros(0, dtype=np.int64)
        return self._stage_termination(
            arena, tuple(frontiers), arrivals, comparator, cancelled
        )

    def _stage_validation(self) -> ExpansionContext:
        """Check configuration and start position, build the expansion context."""
        self.config.validate()
        journey = self.config.journey
        params = self.config.isochrone
        time_start = journey.time_start_datetime

        distance_to_go = float(
            get_distance_meters(
                lon_start=journey.lon_start,
                lon_end=journey.lon_end,
                lat_start=journey.lat_start,
                lat_end=journey.lat_end,
            )
        )
        if distance_to_go <= params.tolerance_meters:
            raise FatalConfigurationError(
                f"Start is {distance_to_go:.0f} m from the destination, "
                f"within the tolerance of {params.tolerance_meters} m."
            )
        if self.land_mask is not None and self.land_mask.contains(
            journey.lon_start, journey.lat_start
        ):
            raise FatalConfigurationError(
                f"Start ({journey.lon_start}, {journey.lat_start}) is on land."
            )
        *_, covered = sample_environment(
            self.field,
            np.array([journey.lon_start]),
            np.array([journey.lat_start]),
            np.array([time_start]),
        )
        if not covered[0]:
            raise FatalConfigurationError(
                f"Start ({journey.lon_start}, {journey.lat_start}) at {time_start} "
                "is outside of the environment coverage."
            )

        context = ExpansionContext(
            polar=self.polar,
            field=self.field,
            lon_end=journey.lon_end,
            lat_end=journey.lat_end,
            time_start=time_start,
            time_step_seconds=params.time_step_seconds,
            headings=tuple(heading_grid(params.heading_resolution_degrees)),
            include_direct_heading=params.include_direct_heading,
            allow_drift=params.allow_drift,
            maneuver_penalty=params.maneuver_penalty,
            tolerance_meters=params.tolerance_meters,
            land_mask=self.land_mask,
            land_check_samples=params.land_check_samples,
            risk=self.config.risk,
        )
        self._log_stage_metrics(
            "validation",
            distance_to_go_meters=distance_to_go,
            num_headings=len(context.headings),
            max_boat_speed_ms=self.polar.max_speed_ms,
        )
        return context

    def _stage_initialization(
        self, context: ExpansionContext, comparator: DominanceComparator
    ) -> tuple:
        """Seed the arena and the first frontier with the start."""
        journey = self.config.journey
        arena = HistoryArena()
        root = arena.add_root(lon=journey.lon_start, lat=journey.lat_start)
        frontier = Frontier(
            step=0,
            elapsed_s=0.0,
            time=context.time_start,
            indices=np.array([root], dtype=np.int64),
        )
        binner = SectorBinner(
            lon_start=journey.lon_start,
            lat_start=journey.lat_start,
            sector_width_degrees=self.config.isochrone.sector_width_degrees,
        )
        archive = None
        if self.config.isochrone.prune_revisited_cells:
            archive = CellArchive(columns=revisit_columns(comparator))
            sectors, radius = binner.locate(arena.lon, arena.lat)
            archive.add(sectors, progress_values(comparator, arena.criteria, radius))
        self._log_stage_metrics("initialization", num_sectors=binner.num_sectors)
        return arena, frontier, binner, archive

    def _stage_expansion(
        self, frontier: Frontier, arena: HistoryArena, executor
    ) -> CandidateBatch:
        """Map the expansion kernel over chunks of the frontier."""
        chunks = split_frontier(
            frontier, arena, chunk_size=self.config.isochrone.expansion_chunk_size
        )
        batch = CandidateBatch.concatenate(executor.map(_task_expand, chunks))
        self._log_stage_metrics(
            "expansion",
            step=frontier.step + 1,
            num_parents=len(frontier),
            num_chunks=len(chunks),
            num_candidates=len(batch),
            num_out_of_coverage=batch.num_out_of_coverage,
            num_on_land=batch.num_on_land,
        )
        return batch

    def _stage_filtering(
        self,
        step: int,
        batch: CandidateBatch,
        arena: HistoryArena,
        binner: SectorBinner,
        archive: CellArchive | None,
        comparator: DominanceComparator,
        context: ExpansionContext,
    ) -> tuple:
        """Reduce candidates to the next frontier and record arrivals."""
        moving = batch.subset(~batch.arrived)
        keep = np.zeros(len(moving), dtype=bool)
        if len(moving):
            sectors, radius = binner.locate(moving.lon, moving.lat)
            keep = filter_candidates(
                criteria=moving.criteria,
                cells=sectors,
                radius_meters=radius,
                remaining_meters=get_distance_meters(
                    lon_start=moving.lon,
                    lon_end=np.full(len(moving), context.lon_end),
                    lat_start=moving.lat,
                    lat_end=np.full(len(moving), context.lat_end),
                ),
                comparator=comparator,
                archive=archive,
                max_frontier_size=self.config.isochrone.max_frontier_size,
            )
        indices = self._append_batch(arena, moving.subset(keep), step)
        arrived = self._append_batch(arena, batch.subset(batch.arrived), step)

        elapsed_s = step * context.time_step_seconds
        frontier = Frontier(
            step=step,
            elapsed_s=elapsed_s,
            time=context.time_start + seconds_to_timedelta(elapsed_s),
            indices=indices,
        )
        self._log_stage_metrics(
            "filtering",
            step=step,
            num_candidates=len(moving),
            num_frontier=len(frontier),
            num_arrivals=len(arrived),
            num_archived_cells=len(archive) if archive is not None else 0,
        )
        return frontier, arrived

    @staticmethod
    def _append_batch(arena: HistoryArena, batch: CandidateBatch, step: int) -> np.ndarray:
        if len(batch) == 0:
            return np.zeros(0, dtype=np.int64)
        return arena.append(
            lon=batch.lon,
            lat=batch.lat,
            elapsed_s=batch.elapsed_s,
            criteria=batch.criteria,
            parent=batch.parent,
            heading=batch.heading,
            side=batch.side,
            segment_s=batch.segment_s,
            step=step,
        )

    def _stage_termination(
        self,
        arena: HistoryArena,
        frontiers: Tuple[Frontier, ...],
        arrivals: np.ndarray,
        comparator: DominanceComparator,
        cancelled: bool,
    ) -> RoutingResult:
        """Reconstruct routes to the terminal front and set the status."""
        journey = self.config.journey
        time_start = journey.time_start_datetime
        if len(arrivals):
            front = arrivals[terminal_front(arena.criteria[arrivals], comparator)]
            routes = reconstruct_routes(arena=arena, indices=front, time_start=time_start)
        elif cancelled:
            latest = frontiers[-1].indices
            latest = latest[arena.parent[latest] >= 0]
            remaining = get_distance_meters(
                lon_start=arena.lon[latest],
                lon_end=np.full(len(latest), journey.lon_end),
                lat_start=arena.lat[latest],
                lat_end=np.full(len(latest), journey.lat_end),
            ) if len(latest) else np.zeros(0)
            order = np.argsort(remaining, kind="stable")
            routes = tuple(
                reconstruct_route(arena=arena, index=index, time_start=time_start)
                for index in latest[order]
            )
        else:
            routes = ()

        if cancelled:
            status = STATUS_CANCELLED
        elif len(arrivals):
            status = STATUS_REACHED
        else:
            status = STATUS_UNREACHABLE

        self._log_stage_metrics(
            "termination",
            status=status,
            num_steps=len(frontiers) - 1,
            num_routes=len(routes),
            num_arena_points=len(arena),
        )
        if status == STATUS_UNREACHABLE:
            logging.warning(
                f"Destination not reached after {len(frontiers) - 1} steps."
            )
        return RoutingResult(
            status=status,
            routes=routes,
            frontiers=frontiers,
            arena=arena,
            logs=self.log,
        )

    def _log_stage_metrics(
        self,
        name: str,
        **metrics: Any,
    ) -> None:
        """Convenience wrapper for stage-level logging."""
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        logging.info("%s [%s] %s", name, timestamp, metrics)
        self.log.add_stage(name=name, **metrics)
