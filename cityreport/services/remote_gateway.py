"""
Remote Gateway.

Thin adapter over the Supabase Edge Functions used as the advisory
remote mirror:

- ``citizen-reports``  receives a full report document.
- ``admin-auth``       mirrors credential mutations
  (``{action, ...}`` → ``{success, message}``).
- ``security-audit``   receives security events, fire-and-forget.

:meth:`RemoteGateway.check_connection` is a cheap reachability check
(a one-row select on ``admin_users``) used before draining the outbox.

Every failure (local-only mode, transport error, non-2xx, relay error,
unexpected body) is normalised to :class:`~cityreport.errors.SyncError`.
The gateway itself is synchronous; callers run it on the background
dispatcher so that nothing on the request path waits on the network.
"""

from __future__ import annotations

from typing import Mapping

from pydantic import ValidationError as PydanticValidationError

from cityreport.database import DatabaseManager
from cityreport.errors import SyncError
from cityreport.logger import StructuredLogger
from cityreport.models.auth_models import RemoteAuthResponse
from cityreport.models.report import Report
from cityreport.models.security_event import SecurityEvent
from cityreport.services.base_service import BaseService

REPORTS_FUNCTION: str = "citizen-reports"
AUTH_FUNCTION: str = "admin-auth"
AUDIT_FUNCTION: str = "security-audit"
HEALTH_TABLE: str = "admin_users"


class RemoteGateway(BaseService):
    """Calls the remote Edge Functions through the shared Supabase client.

    Parameters
    ----------
    db:
        ``DatabaseManager`` owning the (optional) Supabase client.  The
        client already carries the configured request timeout.
    logger:
        Structured logger.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._db = db

    @property
    def is_online(self) -> bool:
        return self._db.is_online

    def check_connection(self) -> bool:
        """Return ``True`` if the remote answers a one-row select.

        ``is_online`` only says a client was configured; this makes one
        real round trip.  Never raises.
        """
        if not self._db.is_online:
            return False

        try:
            self._db.supabase.table(HEALTH_TABLE).select("id").limit(1).execute()
        except Exception as exc:
            self._logger.debug("Remote health check failed: %s", exc)
            return False
        return True

    def invoke(self, function_name: str, body: Mapping[str, object]) -> object:
        """POST *body* to *function_name* and return the decoded JSON reply.

        Raises:
            SyncError: On any failure, including local-only mode.
        """
        if not self._db.is_online:
            raise SyncError(f"{function_name}: remote mirror not configured")

        try:
            return self._db.supabase.functions.invoke(
                function_name,
                invoke_options={"body": dict(body), "responseType": "json"},
            )
        except Exception as exc:
            raise SyncError(f"{function_name}: {exc}") from exc

    def push_report(self, report: Report) -> None:
        """Send one report to ``citizen-reports``; 2xx means accepted."""
        self.invoke(REPORTS_FUNCTION, report.model_dump(mode="json"))
        self._logger.debug("Report %s accepted by remote.", report.id)

    def invoke_auth(self, action: str, payload: Mapping[str, object]) -> RemoteAuthResponse:
        """Run one ``admin-auth`` action.

        Raises:
            SyncError: If the call fails or the remote reports
                ``success: false``.
        """
        raw = self.invoke(AUTH_FUNCTION, {"action": action, **payload})
        try:
            response = RemoteAuthResponse.model_validate(raw)
        except PydanticValidationError as exc:
            raise SyncError(f"{AUTH_FUNCTION}: unexpected response body") from exc

        if not response.success:
            raise SyncError(
                f"{AUTH_FUNCTION}/{action}: {response.message or 'rejected'}"
            )
        return response

    def forward_security_event(self, event: SecurityEvent) -> None:
        self.invoke(AUDIT_FUNCTION, event.model_dump(mode="json"))
