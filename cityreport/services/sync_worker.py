"""
Sync Agent and Outbox Worker.

``SyncAgent.push`` is the only remote write on the report path.  It is
fire-and-forget: the push runs on the background dispatcher, a failure
is logged and dropped, and the caller never learns the outcome.  The
local store stays authoritative and is never rolled back.

When the durable outbox is enabled (``SYNC_OUTBOX_ENABLED``), a failed
push is instead appended to the ``sync_outbox`` document and
:class:`SyncWorkerService` replays it later from a daemon thread, with
exponential backoff on consecutive failures.  Entries that keep failing
are parked as ``permanently_failed`` after ``_MAX_RETRY_COUNT``
attempts.

Thread Safety
-------------
The outbox is a read-modify-write document; every mutation holds the
outbox lock so concurrent failed pushes cannot drop each other's
entries.
"""

from __future__ import annotations

import threading
from typing import Optional

from cityreport.config import AppConfig
from cityreport.errors import SyncError
from cityreport.logger import StructuredLogger
from cityreport.models.enums import OutboxStatus
from cityreport.models.report import Report
from cityreport.services.base_service import BaseService
from cityreport.services.dispatcher import Dispatcher
from cityreport.services.remote_gateway import REPORTS_FUNCTION, RemoteGateway
from cityreport.storage.local_store import LocalStore
from cityreport.utils.general import Clock, generate_id, utc_now

OUTBOX_KEY: str = "sync_outbox"

OutboxEntry = dict[str, object]


class SyncOutbox(BaseService):
    """Persisted queue of pushes that failed and await replay.

    Entry shape::

        {id, target, entity_id, payload, status, attempts,
         last_error, created_at}
    """

    _MAX_RETRY_COUNT: int = 5

    def __init__(
        self,
        store: LocalStore,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._clock = clock
        self._lock: threading.Lock = threading.Lock()

    def enqueue(self, target: str, entity_id: str, payload: dict[str, object]) -> None:
        with self._lock:
            entries = self._load()
            entries.append({
                "id": generate_id(),
                "target": target,
                "entity_id": entity_id,
                "payload": payload,
                "status": OutboxStatus.PENDING,
                "attempts": 0,
                "last_error": None,
                "created_at": self._clock(),
            })
            if not self._store.set(OUTBOX_KEY, entries):
                self._logger.error("Could not enqueue %s for replay.", entity_id)

    def pending(self, limit: int = 50) -> list[OutboxEntry]:
        """Oldest-first pending entries, at most *limit* of them."""
        with self._lock:
            return [
                entry for entry in self._load()
                if entry.get("status") == OutboxStatus.PENDING
            ][:limit]

    def all_entries(self) -> list[OutboxEntry]:
        with self._lock:
            return self._load()

    def mark_synced(self, entry_id: str) -> None:
        self._update(entry_id, status=OutboxStatus.SYNCED, error=None)

    def mark_failed(self, entry_id: str, error_message: str) -> None:
        """Record a failed attempt; park the entry once retries run out."""
        self._update(entry_id, status=None, error=error_message)

    def _update(
        self,
        entry_id: str,
        status: Optional[OutboxStatus],
        error: Optional[str],
    ) -> None:
        with self._lock:
            entries = self._load()
            for entry in entries:
                if entry.get("id") != entry_id:
                    continue
                attempts = int(entry.get("attempts") or 0) + 1
                entry["attempts"] = attempts
                entry["last_error"] = error
                if status is not None:
                    entry["status"] = status
                elif attempts >= self._MAX_RETRY_COUNT:
                    entry["status"] = OutboxStatus.PERMANENTLY_FAILED
                    self._logger.warning(
                        "Outbox entry %s permanently failed after %d attempts.",
                        entry_id,
                        attempts,
                    )
                break
            self._store.set(OUTBOX_KEY, entries)

    def _load(self) -> list[OutboxEntry]:
        data = self._store.get(OUTBOX_KEY, [])
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]


class SyncAgent(BaseService):
    """Best-effort pusher of newly created reports.

    Parameters
    ----------
    gateway:
        Remote Edge Function adapter.
    dispatcher:
        Runs each push off the caller's thread.
    logger:
        Structured logger.
    outbox:
        When given, failed pushes are queued for replay instead of
        being dropped.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        dispatcher: Dispatcher,
        logger: StructuredLogger,
        outbox: Optional[SyncOutbox] = None,
    ) -> None:
        super().__init__(logger)
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._outbox = outbox

    def push(self, report: Report) -> None:
        """Schedule one remote push of *report*.  Never blocks, never raises."""
        try:
            self._dispatcher.submit(
                lambda: self._push_now(report),
                name=f"push-report-{report.id}",
            )
        except Exception:
            self._logger.warning(
                "Could not schedule push of report %s.", report.id, exc_info=True,
            )

    def _push_now(self, report: Report) -> None:
        try:
            self._gateway.push_report(report)
            self._logger.info(
                "Report %s pushed to remote.", report.id,
                extra={"event": "SYNC_PUSH"},
            )
        except SyncError as exc:
            if self._outbox is None:
                self._logger.warning(
                    "Remote push of report %s failed, not retrying: %s",
                    report.id,
                    exc,
                )
                return
            self._logger.warning(
                "Remote push of report %s failed, queued for replay: %s",
                report.id,
                exc,
            )
            self._outbox.enqueue(
                REPORTS_FUNCTION, report.id, report.model_dump(mode="json"),
            )


class SyncWorkerService(BaseService):
    """Daemon thread that drains the ``sync_outbox`` to the remote.

    Parameters
    ----------
    outbox:
        Queue of failed pushes.
    gateway:
        Remote Edge Function adapter.
    config:
        Supplies the base and maximum polling intervals.
    logger:
        Structured JSON logger.
    """

    _BATCH_SIZE: int = 50

    _ALLOWED_TARGETS: frozenset[str] = frozenset({REPORTS_FUNCTION})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __init__(
        self,
        outbox: SyncOutbox,
        gateway: RemoteGateway,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._outbox = outbox
        self._gateway = gateway
        self._base_interval_s: float = config.SYNC_BASE_INTERVAL_S
        self._max_interval_s: float = config.SYNC_MAX_INTERVAL_S
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()
        self._consecutive_failures: int = 0

    def start(self) -> None:
        """Start the worker on a daemon thread.  Idempotent."""
        if self._thread is not None and self._thread.is_alive():
            self._logger.debug("Sync worker already running.")
            return

        self._stop_event.clear()
        self._consecutive_failures = 0

        self._thread = threading.Thread(
            target=self._run_loop,
            name="SyncWorker",
            daemon=True,
        )
        self._thread.start()
        self._logger.info("Sync worker started.")

    def stop(self) -> None:
        """Signal the worker to stop and wait up to 10 s for it to exit.

        Safe to call when the worker is not running.
        """
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=10.0)

        if self._thread.is_alive():
            self._logger.warning(
                "Sync worker thread did not terminate within 10 s."
            )
        else:
            self._logger.info("Sync worker stopped.")

        self._thread = None

    @property
    def is_running(self) -> bool:
        """``True`` when the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                interval = self._calculate_backoff_interval()
                if self._stop_event.wait(timeout=interval):
                    break

                try:
                    self.run_cycle()
                except Exception:
                    self._consecutive_failures += 1
                    self._logger.warning("Sync cycle failed", exc_info=True)
        except Exception:
            self._logger.error(
                "Sync worker thread terminated due to unhandled exception.",
                exc_info=True,
            )

    def run_cycle(self) -> int:
        """Health-check the remote, then replay one batch.

        An unreachable remote skips the batch and counts as a failure
        so the next poll backs off.  Local-only mode skips silently.
        """
        if not self._gateway.is_online:
            return 0

        if not self._gateway.check_connection():
            self._consecutive_failures += 1
            self._logger.debug(
                "Remote unreachable, skipping sync cycle (%d consecutive).",
                self._consecutive_failures,
            )
            return 0

        return self.process_pending()

    def process_pending(self) -> int:
        """Replay one batch of pending entries.

        Returns
        -------
        int
            Number of entries successfully synced in this cycle.
        """
        entries = self._outbox.pending(self._BATCH_SIZE)
        if not entries:
            return 0

        synced_count: int = 0
        failed_count: int = 0

        for entry in entries:
            entry_id = str(entry.get("id"))
            target = str(entry.get("target"))
            payload = entry.get("payload")

            if target not in self._ALLOWED_TARGETS or not isinstance(payload, dict):
                self._logger.error(
                    "Malformed outbox entry %s (target=%s).", entry_id, target,
                )
                self._outbox.mark_failed(entry_id, "malformed entry")
                failed_count += 1
                continue

            try:
                self._gateway.invoke(target, payload)
                self._outbox.mark_synced(entry_id)
                synced_count += 1
            except SyncError as exc:
                self._logger.warning(
                    "Failed to replay outbox entry %s: %s", entry_id, exc,
                )
                self._outbox.mark_failed(entry_id, str(exc))
                failed_count += 1

        if synced_count > 0:
            self._consecutive_failures = 0
            self._logger.info(
                "Sync cycle complete: %d/%d entries synced.",
                synced_count,
                len(entries),
            )
        elif failed_count > 0:
            self._consecutive_failures += 1

        return synced_count

    # ------------------------------------------------------------------
    # Exponential backoff
    # ------------------------------------------------------------------

    def _calculate_backoff_interval(self) -> float:
        """Return the sleep interval for the current failure count.

        On zero failures the base interval is used.  Each consecutive
        failure doubles the interval (capped at the configured maximum).
        """
        if self._consecutive_failures == 0:
            return self._base_interval_s

        backoff = self._base_interval_s * (2 ** min(self._consecutive_failures, 6))
        return min(backoff, self._max_interval_s)
