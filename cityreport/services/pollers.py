"""
Periodic Pollers.

Recurring refresh loops (report list, map, history, alert check) run as
:class:`PeriodicTask` daemon threads, following the same start / stop
lifecycle as the sync worker.  A :class:`PollerRegistry` owns every task
started on behalf of a view or session and tears them all down
deterministically with :meth:`PollerRegistry.stop_all`.

An exception raised by a tick is logged and the loop keeps running.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from cityreport.logger import StructuredLogger
from cityreport.services.base_service import BaseService

Tick = Callable[[], None]


class PeriodicTask(BaseService):
    """Runs *tick* every *interval_s* seconds on a daemon thread.

    The first tick runs one interval after :meth:`start`.
    """

    def __init__(
        self,
        name: str,
        interval_s: float,
        tick: Tick,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._name = name
        self._interval_s = interval_s
        self._tick = tick
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()
        self._ticks: int = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        """Number of ticks completed (successfully or not)."""
        return self._ticks

    def start(self) -> None:
        """Start the loop.  Idempotent."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"Poller-{self._name}",
            daemon=True,
        )
        self._thread.start()
        self._logger.debug("Poller '%s' started (%.1f s).", self._name, self._interval_s)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and join the thread.  Safe when not running."""
        if self._thread is None:
            return
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                self._logger.warning(
                    "Poller '%s' did not terminate within %.1f s.",
                    self._name,
                    timeout,
                )
        self._thread = None

    def _run_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._interval_s):
            try:
                self._tick()
            except Exception:
                self._logger.warning(
                    "Poller '%s' tick failed.", self._name, exc_info=True,
                )
            finally:
                self._ticks += 1


class PollerRegistry(BaseService):
    """Named collection of :class:`PeriodicTask`s with one teardown point."""

    def __init__(self, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._tasks: dict[str, PeriodicTask] = {}
        self._lock: threading.Lock = threading.Lock()

    def register(self, name: str, interval_s: float, tick: Tick) -> PeriodicTask:
        """Create and start a poller; an existing one with *name* is replaced."""
        task = PeriodicTask(name, interval_s, tick, self._logger)
        with self._lock:
            previous = self._tasks.pop(name, None)
            self._tasks[name] = task
        if previous is not None:
            previous.stop()
        task.start()
        return task

    def unregister(self, name: str) -> bool:
        """Stop and forget *name*.  Returns ``False`` if it was unknown."""
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is None:
            return False
        task.stop()
        return True

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._tasks)

    def stop_all(self) -> None:
        """Stop every registered poller.  Idempotent."""
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.stop()
        if tasks:
            self._logger.info("Stopped %d poller(s).", len(tasks))
