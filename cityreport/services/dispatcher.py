"""
Background Dispatcher.

Runs fire-and-forget work (remote pushes, auth mirrors, audit forwards)
on short-lived daemon threads.  Callers submit and move on: they never
receive a handle, a result, or an exception.  Every failure inside a
task is logged here and discarded.

Thread Safety
-------------
The set of in-flight threads is guarded by a ``Condition`` so that
:meth:`wait_idle` can block until every submitted task has finished.
This is what tests and the shutdown path use to drain pending work.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol

from cityreport.logger import StructuredLogger
from cityreport.services.base_service import BaseService

Task = Callable[[], None]


class Dispatcher(Protocol):
    """Anything that can run a task without the caller waiting on it."""

    def submit(self, fn: Task, name: str = ...) -> None: ...  # noqa: E704

    def wait_idle(self, timeout: float = ...) -> bool: ...  # noqa: E704

    def shutdown(self, timeout: float = ...) -> None: ...  # noqa: E704


class BackgroundDispatcher(BaseService):
    """Spawns one daemon thread per submitted task.

    After :meth:`shutdown` new submissions are dropped with a warning.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._active: set[threading.Thread] = set()
        self._condition: threading.Condition = threading.Condition()
        self._closed: bool = False

    def submit(self, fn: Task, name: str = "background-task") -> None:
        """Run *fn* on a detached daemon thread."""
        with self._condition:
            if self._closed:
                self._logger.warning(
                    "Dispatcher is shut down; dropping task '%s'.", name,
                )
                return
            thread = threading.Thread(
                target=self._run,
                args=(fn, name),
                name=name,
                daemon=True,
            )
            self._active.add(thread)
        thread.start()

    def wait_idle(self, timeout: float = 10.0) -> bool:
        """Block until no task is running.  Returns ``False`` on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: not self._active, timeout=timeout)

    def shutdown(self, timeout: float = 10.0) -> None:
        """Refuse new work and give in-flight tasks *timeout* s to finish.

        Idempotent.
        """
        with self._condition:
            if self._closed:
                return
            self._closed = True
        if not self.wait_idle(timeout):
            self._logger.warning(
                "Background tasks still running after %.1f s; abandoning them.",
                timeout,
            )
        else:
            self._logger.info("Background dispatcher stopped.")

    @property
    def pending(self) -> int:
        """Number of tasks currently running."""
        with self._condition:
            return len(self._active)

    def _run(self, fn: Task, name: str) -> None:
        try:
            fn()
        except Exception:
            self._logger.warning(
                "Background task '%s' failed.", name, exc_info=True,
            )
        finally:
            with self._condition:
                self._active.discard(threading.current_thread())
                self._condition.notify_all()


class InlineDispatcher(BaseService):
    """Runs each task synchronously on the calling thread.

    Same contract as :class:`BackgroundDispatcher`: failures are logged,
    never raised.  Useful for deterministic tests and single-threaded
    scripts.
    """

    def submit(self, fn: Task, name: str = "background-task") -> None:
        try:
            fn()
        except Exception:
            self._logger.warning(
                "Background task '%s' failed.", name, exc_info=True,
            )

    def wait_idle(self, timeout: float = 10.0) -> bool:
        return True

    def shutdown(self, timeout: float = 10.0) -> None:
        return None
