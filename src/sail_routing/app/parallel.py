"""Worker state management for parallel expansion.

The expansion context (polar, environment field, land mask and parameters)
is handed to every worker once through the executor initializer, so tasks
only carry copied chunks of frontier state.

Module-level globals are required because:
- concurrent.futures requires worker functions to be picklable (module-level)
- Executor initializers run once per worker to set up shared state
- Process isolation: each process has separate memory, so process-level globals are safe
- Thread-local storage: threading.local() provides per-thread state for worker threads

State variables (initialized in RoutingApp.run() when executors are created):
- _WORKER_STATE: Per-process state for ProcessPoolExecutor workers and sequential runs
- _THREAD_LOCAL_STATE: Per-thread state for ThreadPoolExecutor workers
- _SHARED_CONTEXT: Expansion context shared by threads (avoids serialization)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..algorithms.isochrones import expand_chunk

if TYPE_CHECKING:
    from ..algorithms.isochrones import CandidateBatch, ExpansionContext, FrontierChunk


# ========== Module-level Worker State ==========

_WORKER_STATE = None
_THREAD_LOCAL_STATE = None
_SHARED_CONTEXT = None


@dataclass
class WorkerState:
    """State shared across task calls in a single worker.

    Attributes
    ----------
    context : ExpansionContext
        Immutable inputs of the expansion kernel
    """

    context: ExpansionContext


def _initialize_worker_process(context: ExpansionContext) -> None:
    """Initialize worker process with the expansion context.

    Called once per worker process at creation time by ProcessPoolExecutor.
    """
    global _WORKER_STATE
    _WORKER_STATE = WorkerState(context=context)


def _initialize_worker_thread() -> None:
    """Initialize worker thread with thread-local state.

    Called once per worker thread at creation time by ThreadPoolExecutor.
    Threads share memory, so the context is taken from _SHARED_CONTEXT.
    """
    _THREAD_LOCAL_STATE.state = WorkerState(context=_SHARED_CONTEXT)


def _initialize_sequential(context: ExpansionContext) -> None:
    """Initialize worker state for sequential execution in the main thread."""
    global _WORKER_STATE
    _WORKER_STATE = WorkerState(context=context)


def _get_state() -> WorkerState:
    """Get the worker state for current process/thread.

    Returns thread-local state if running in a worker thread,
    otherwise returns global process state.
    """
    if hasattr(_THREAD_LOCAL_STATE, "state"):
        return _THREAD_LOCAL_STATE.state
    return _WORKER_STATE


def _task_expand(chunk: FrontierChunk) -> CandidateBatch:
    """Expand one chunk of frontier points with the worker's context."""
    return expand_chunk(chunk, _get_state().context)


class SequentialExecutor:
    """Sequential executor that mimics concurrent.futures.Executor interface.

    Provides a `.map()` method for compatibility with ThreadPoolExecutor
    and ProcessPoolExecutor, but executes tasks sequentially in the main thread.
    """

    def __init__(self, initializer=None, initargs=()):
        if initializer is not None:
            initializer(*initargs)

    def map(self, func, *iterables):
        """Map a function over iterables sequentially."""
        return map(func, *iterables)

    def shutdown(self, wait=True):
        """No-op, exists for interface compatibility."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False
