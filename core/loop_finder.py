"""
Loop Finder
Background search for the frame range over which an animation repeats
"""

import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from utils.log import LogFn, resolve_logger

from .data_structures import AnimationClip, Model, WorldTransform
from .hierarchy import pose
from .jobs import BackgroundJob

SEARCH_TIMEOUT_SECONDS = 180.0
PROGRESS_EVERY = 5
YIELD_EVERY = 100

# Snapshot columns: m00, m10, m01, m11, tx, ty, opacity
STATE_WEIGHTS = np.array([100.0, 100.0, 100.0, 100.0, 1.0, 1.0, 255.0], dtype=np.float64)


class LoopStatus:
    """Messages emitted by a loop search"""

    @dataclass(frozen=True)
    class Searching:
        frames: int

    @dataclass(frozen=True)
    class Found:
        start_frame: int
        end_frame: int

    @dataclass(frozen=True)
    class Error:
        message: str

    TERMINAL = (Found, Error)


def snapshot(transforms: List[WorldTransform]) -> np.ndarray:
    """Comparable per-part state (matrix components and opacity) of one frame."""
    state = np.empty((len(transforms), 7), dtype=np.float64)
    for i, wt in enumerate(transforms):
        m = wt.matrix
        state[i] = (m.m00, m.m10, m.m01, m.m11, m.tx, m.ty, wt.opacity)
    return state


class _StateHistory:
    """Growing per-frame snapshot buffer; capacity doubles when full."""

    def __init__(self, part_count: int, capacity: int = 64):
        self._data = np.empty((capacity, part_count, 7), dtype=np.float64)
        self.size = 0

    def append(self, state: np.ndarray):
        if self.size == len(self._data):
            grown = np.empty((len(self._data) * 2,) + self._data.shape[1:], dtype=np.float64)
            grown[:self.size] = self._data[:self.size]
            self._data = grown
        self._data[self.size] = state
        self.size += 1

    def window(self, lo: int, hi: int) -> np.ndarray:
        return self._data[lo:hi + 1]


def find_loop(
    model: Model,
    clip: AnimationClip,
    tolerance: float,
    min_loop: int,
    max_loop: Optional[int] = None,
    emit: Optional[Callable[[object], None]] = None,
    abort_event: Optional[threading.Event] = None,
    timeout: float = SEARCH_TIMEOUT_SECONDS,
):
    """
    Search frames 0, 1, 2, ... until a frame matches an earlier one

    Every frame is compared against all retained earlier frames, so memory
    and work grow quadratically with the number of frames searched; the
    wall-clock timeout is the only bound.

    Args:
        model: Model to pose
        clip: Animation to search
        tolerance: Maximum weighted L1 distance that counts as a match
        min_loop: Shortest accepted loop length in frames
        max_loop: Longest accepted loop length, None for unbounded
        emit: Progress callback receiving LoopStatus.Searching
        abort_event: Cooperative cancellation flag
        timeout: Seconds before giving up

    Returns:
        LoopStatus.Found or LoopStatus.Error
    """
    started = time.monotonic()
    history = _StateHistory(len(model.parts))
    min_len = max(min_loop, 1)
    current = 0

    while True:
        if abort_event is not None and abort_event.is_set():
            return LoopStatus.Error("Aborted")
        if time.monotonic() - started > timeout:
            return LoopStatus.Error("Timed out (3 mins)")

        state = snapshot(pose(model, clip, float(current)))

        lo = max(0, current - max_loop) if max_loop is not None else 0
        hi = current - min_len
        if hi >= lo:
            diffs = np.abs(history.window(lo, hi) - state)
            distances = (diffs * STATE_WEIGHTS).sum(axis=(1, 2))
            hits = np.flatnonzero(distances <= tolerance)
            if hits.size:
                return LoopStatus.Found(lo + int(hits[0]), current)

        history.append(state)
        current += 1

        if emit is not None and current % PROGRESS_EVERY == 0:
            emit(LoopStatus.Searching(current))
        if current % YIELD_EVERY == 0:
            time.sleep(0.001)


def start_search(
    model: Model,
    clip: AnimationClip,
    tolerance: float,
    min_loop: int,
    max_loop: Optional[int] = None,
    status_queue: Optional[queue.Queue] = None,
    abort_event: Optional[threading.Event] = None,
    timeout: float = SEARCH_TIMEOUT_SECONDS,
    log_fn: Optional[LogFn] = None,
) -> BackgroundJob:
    """
    Start a loop search on a worker thread

    Returns:
        The running job; poll it for LoopStatus messages
    """
    log = resolve_logger(log_fn)
    log(f"Searching for loop (tolerance {tolerance}, min {min_loop}, max {max_loop or 'none'})", "INFO")

    def run(emit, abort):
        result = find_loop(model, clip, tolerance, min_loop, max_loop, emit, abort, timeout)
        if isinstance(result, LoopStatus.Found):
            log(f"Loop found: frames {result.start_frame}-{result.end_frame}", "SUCCESS")
        else:
            log(f"Loop search stopped: {result.message}", "WARNING")
        return result

    job = BackgroundJob(
        run,
        on_error=lambda exc: LoopStatus.Error(str(exc)),
        name="loop-search",
        status_queue=status_queue,
        abort_event=abort_event,
        log_fn=log,
    )
    return job.start()
