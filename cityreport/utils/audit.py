"""
Structured Security Audit Logging Utility.

Every security event is written to the log as a single
``AUDIT: {json}`` line so it can be grepped out of the rotating log file
independently of the ``security_events`` collection.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from cityreport.models.security_event import SecurityEvent

if TYPE_CHECKING:
    from cityreport.logger import StructuredLogger

__all__ = ["log_security_event"]


def log_security_event(logger: StructuredLogger, event: SecurityEvent) -> None:
    """Emit *event* as a structured ``AUDIT:`` log line.

    Failed attempts and lockouts are logged at WARNING, everything else
    at INFO.
    """
    line = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)
    if event.kind.endswith("_FAILED") or event.kind == "ACCOUNT_LOCKED":
        logger.warning("AUDIT: %s", line)
    else:
        logger.info("AUDIT: %s", line)
