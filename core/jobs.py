"""
Background jobs
One worker thread per long-running operation, reporting over a status queue
"""

import queue
import threading
import traceback
from typing import Any, Callable, List, Optional

from utils.log import LogFn, resolve_logger

# target(emit, abort_event) -> terminal status message
JobTarget = Callable[[Callable[[Any], None], threading.Event], Any]


class BackgroundJob:
    """
    Runs a target on a daemon thread

    The target receives an ``emit`` callback for progress messages and the
    shared abort event, and returns the terminal message. An exception that
    escapes the target is logged and turned into ``on_error(exc)``, so the
    queue always ends with exactly one terminal message.
    """

    def __init__(
        self,
        target: JobTarget,
        on_error: Callable[[BaseException], Any],
        name: str = "job",
        status_queue: Optional[queue.Queue] = None,
        abort_event: Optional[threading.Event] = None,
        log_fn: Optional[LogFn] = None,
    ):
        self.name = name
        self.status: queue.Queue = status_queue if status_queue is not None else queue.Queue()
        self.abort_event = abort_event if abort_event is not None else threading.Event()
        self.log = resolve_logger(log_fn)
        self._target = target
        self._on_error = on_error
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "BackgroundJob":
        self._thread.start()
        return self

    def _run(self):
        try:
            terminal = self._target(self.status.put, self.abort_event)
        except Exception as e:
            self.log(f"{self.name} failed: {e}", "ERROR")
            self.log(traceback.format_exc(), "ERROR")
            terminal = self._on_error(e)
        self.status.put(terminal)

    def abort(self):
        """Request cooperative cancellation."""
        self.abort_event.set()

    @property
    def is_aborted(self) -> bool:
        return self.abort_event.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def poll(self) -> List[Any]:
        """Drain pending status messages without blocking."""
        messages = []
        while True:
            try:
                messages.append(self.status.get_nowait())
            except queue.Empty:
                break
        return messages

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker; returns True once it has finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()
