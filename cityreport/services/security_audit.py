"""
Security Audit Service.

Sink for authentication and session events.  Each event is:

1. appended to the ``security_events`` collection (append-only),
2. written to the log as an ``AUDIT:`` line,
3. forwarded to the remote ``security-audit`` function on the
   background dispatcher when the remote mirror is configured.

Recording never raises.  A failing sink must not change the outcome of
the sign-in, sign-out or credential change that produced the event.
"""

from __future__ import annotations

import threading
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from cityreport.logger import StructuredLogger
from cityreport.models.enums import SecurityEventKind
from cityreport.models.security_event import SecurityEvent
from cityreport.services.base_service import BaseService
from cityreport.services.dispatcher import Dispatcher
from cityreport.services.remote_gateway import RemoteGateway
from cityreport.storage.local_store import LocalStore
from cityreport.utils.audit import log_security_event
from cityreport.utils.general import Clock, utc_now

EVENTS_KEY: str = "security_events"


class SecurityAuditService(BaseService):
    """Records security events locally and mirrors them remotely.

    Parameters
    ----------
    store:
        Local store holding the ``security_events`` list.
    logger:
        Structured logger (receives the ``AUDIT:`` lines).
    gateway:
        Remote adapter; ``None`` keeps the log local-only.
    dispatcher:
        Runs the remote forward off the caller's thread.
    clock:
        Source of event timestamps.
    """

    def __init__(
        self,
        store: LocalStore,
        logger: StructuredLogger,
        gateway: Optional[RemoteGateway] = None,
        dispatcher: Optional[Dispatcher] = None,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._clock = clock
        self._lock: threading.Lock = threading.Lock()

    def record(
        self,
        kind: SecurityEventKind,
        subject: str,
        detail: str = "",
    ) -> Optional[SecurityEvent]:
        """Record one event.  Returns it, or ``None`` if it was dropped."""
        try:
            event = SecurityEvent(
                timestamp=self._clock(),
                kind=kind,
                subject=subject,
                detail=detail,
            )
        except PydanticValidationError as exc:
            self._logger.error("Dropping malformed security event: %s", exc)
            return None

        try:
            log_security_event(self._logger, event)
            self._append(event)
            self._forward(event)
        except Exception:
            self._logger.error(
                "Security event sink failed for %s.", kind, exc_info=True,
            )
        return event

    def get_events(
        self,
        kind: Optional[SecurityEventKind] = None,
        subject: Optional[str] = None,
    ) -> list[SecurityEvent]:
        """Stored events, oldest first, optionally filtered."""
        raw = self._store.get(EVENTS_KEY, [])
        if not isinstance(raw, list):
            return []

        events: list[SecurityEvent] = []
        for item in raw:
            try:
                event = SecurityEvent.model_validate(item)
            except PydanticValidationError:
                continue
            if kind is not None and event.kind != kind:
                continue
            if subject is not None and event.subject != subject:
                continue
            events.append(event)
        return events

    def _append(self, event: SecurityEvent) -> None:
        with self._lock:
            events = self._store.get(EVENTS_KEY, [])
            if not isinstance(events, list):
                events = []
            events.append(event.model_dump(mode="json"))
            if not self._store.set(EVENTS_KEY, events):
                self._logger.error("Could not persist security event %s.", event.kind)

    def _forward(self, event: SecurityEvent) -> None:
        if self._gateway is None or self._dispatcher is None:
            return
        if not self._gateway.is_online:
            return
        gateway = self._gateway
        self._dispatcher.submit(
            lambda: gateway.forward_security_event(event),
            name=f"audit-{event.kind.lower()}",
        )
