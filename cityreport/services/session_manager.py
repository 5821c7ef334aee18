"""
Session Manager.

Issues, validates, slides and destroys the single staff session stored
under the ``current_session`` key.

Lifecycle::

    Created ──▶ Active ──▶ Expired      (absolute or inactivity window)
                       └─▶ Invalidated  (logout, password change, ...)

Expiry is lazy: nothing sweeps sessions in the background.  It is
detected and acted upon when :meth:`SessionManager.get_current` runs.
A successful read slides ``last_activity`` to *now*; ``expires_at`` is
fixed at creation and never extended.
"""

from __future__ import annotations

import secrets
import threading
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from cityreport.logger import StructuredLogger
from cityreport.models.account import AdminUser
from cityreport.models.enums import AdminRole, SecurityEventKind, SessionStrength
from cityreport.models.session import Session
from cityreport.services.base_service import BaseService
from cityreport.services.security_audit import SecurityAuditService
from cityreport.storage.local_store import LocalStore
from cityreport.utils.general import Clock, utc_now

SESSION_KEY: str = "current_session"

_TOKEN_BYTES: int = 32

_STRONG_MAX_IDLE: timedelta = timedelta(minutes=30)
_STRONG_MIN_REMAINING: timedelta = timedelta(hours=6)
_MEDIUM_MAX_IDLE: timedelta = timedelta(minutes=60)
_MEDIUM_MIN_REMAINING: timedelta = timedelta(hours=2)


class SessionManager(BaseService):
    """Owns the persisted staff session.

    Parameters
    ----------
    store:
        Local store holding ``current_session``.
    audit:
        Security event sink.
    logger:
        Structured logger.
    absolute_ttl_s:
        Lifetime of a session from creation, regardless of activity.
    inactivity_ttl_s:
        Maximum idle time between two successful reads.
    clock:
        Source of the current UTC time.
    """

    def __init__(
        self,
        store: LocalStore,
        audit: SecurityAuditService,
        logger: StructuredLogger,
        absolute_ttl_s: int = 8 * 60 * 60,
        inactivity_ttl_s: int = 2 * 60 * 60,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._audit = audit
        self._absolute_ttl = timedelta(seconds=absolute_ttl_s)
        self._inactivity_ttl = timedelta(seconds=inactivity_ttl_s)
        self._clock = clock
        self._lock: threading.RLock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, user: AdminUser) -> Session:
        """Start a new session for *user*, replacing any existing one."""
        now = self._clock()
        session = Session(
            user=user,
            token=secrets.token_hex(_TOKEN_BYTES),
            expires_at=now + self._absolute_ttl,
            last_activity=now,
        )
        with self._lock:
            self._save(session)
        self._logger.info(
            "Session created for %s.", user.email,
            extra={"event": "SESSION_CREATED", "user_id": user.id},
        )
        self._audit.record(SecurityEventKind.SESSION_CREATED, user.email)
        return session

    def get_current(self) -> Optional[Session]:
        """Return the valid current session, sliding its inactivity window.

        Absent or unreadable sessions yield ``None`` (unreadable payloads
        are removed).  An expired session is removed, audited, and also
        yields ``None``.
        """
        with self._lock:
            session = self._load()
            if session is None:
                return None

            now = self._clock()
            window = self._expired_window(session, now)
            if window is not None:
                self._store.remove(SESSION_KEY)
                self._logger.info(
                    "Session for %s expired (%s).", session.user.email, window,
                    extra={"event": "SESSION_EXPIRED"},
                )
                self._audit.record(
                    SecurityEventKind.SESSION_EXPIRED,
                    session.user.email,
                    f"{window} timeout",
                )
                return None

            session = session.model_copy(update={"last_activity": now})
            self._save(session)
            return session

    def destroy(self, reason: str = "logout") -> None:
        """End the current session.  Idempotent.

        ``reason="logout"`` records ``LOGOUT``; any other reason is a
        security-driven invalidation and records ``SESSION_INVALIDATED``
        with the reason as detail.  A session that had already expired
        records ``SESSION_EXPIRED`` instead.  Nothing is recorded when
        there was no session.
        """
        with self._lock:
            session = self._load()
            self._store.remove(SESSION_KEY)

        if session is None:
            return

        window = self._expired_window(session, self._clock())
        if window is not None:
            self._logger.info(
                "Session for %s expired (%s).", session.user.email, window,
                extra={"event": "SESSION_EXPIRED"},
            )
            self._audit.record(
                SecurityEventKind.SESSION_EXPIRED,
                session.user.email,
                f"{window} timeout",
            )
            return

        if reason == "logout":
            self._audit.record(SecurityEventKind.LOGOUT, session.user.email)
        else:
            self._audit.record(
                SecurityEventKind.SESSION_INVALIDATED, session.user.email, reason,
            )
        self._logger.info(
            "Session for %s ended (%s).", session.user.email, reason,
            extra={"event": "SESSION_DESTROYED"},
        )

    def update_user(self, user: AdminUser) -> Optional[Session]:
        """Replace the user snapshot of the current session in place.

        Token and both expiry windows are kept.  Returns ``None`` if
        there is no valid session.
        """
        with self._lock:
            session = self.get_current()
            if session is None:
                return None
            session = session.model_copy(update={"user": user})
            self._save(session)
            return session

    # ------------------------------------------------------------------
    # Convenience queries
    # ------------------------------------------------------------------

    def current_user(self) -> Optional[AdminUser]:
        session = self.get_current()
        return session.user if session is not None else None

    def is_authenticated(self) -> bool:
        return self.get_current() is not None

    def has_role(self, role: AdminRole | str) -> bool:
        """``True`` if the signed-in user has exactly *role*."""
        user = self.current_user()
        return user is not None and user.role == str(role)

    def session_strength(self) -> SessionStrength:
        """Freshness of the current session, without sliding it.

        ``strong``: idle under 30 min and more than 6 h left.
        ``medium``: idle under 60 min and more than 2 h left.
        Anything else, including no session, is ``weak``.
        """
        with self._lock:
            session = self._load()
        now = self._clock()
        if session is None or self._expired_window(session, now) is not None:
            return SessionStrength.WEAK

        idle = now - session.last_activity
        remaining = session.expires_at - now

        if idle < _STRONG_MAX_IDLE and remaining > _STRONG_MIN_REMAINING:
            return SessionStrength.STRONG
        if idle < _MEDIUM_MAX_IDLE and remaining > _MEDIUM_MIN_REMAINING:
            return SessionStrength.MEDIUM
        return SessionStrength.WEAK

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _expired_window(self, session: Session, now: datetime) -> Optional[str]:
        if session.is_absolutely_expired(now):
            return "absolute"
        if session.is_idle_expired(now, self._inactivity_ttl):
            return "inactivity"
        return None

    def _load(self) -> Optional[Session]:
        raw = self._store.get(SESSION_KEY, None)
        if raw is None:
            return None
        try:
            return Session.model_validate(raw)
        except PydanticValidationError:
            self._logger.warning("Discarding unreadable session payload.")
            self._store.remove(SESSION_KEY)
            return None

    def _save(self, session: Session) -> None:
        if not self._store.set(SESSION_KEY, session):
            self._logger.error("Could not persist the current session.")
