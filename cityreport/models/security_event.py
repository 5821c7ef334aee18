"""
Security Event Model.

Append-only audit entry.  The application never mutates or deletes one
once written.
"""

from __future__ import annotations

from pydantic import BaseModel

from cityreport.models.common import UtcDatetime
from cityreport.models.enums import SecurityEventKind


class SecurityEvent(BaseModel):
    """Schema-validated representation of a single security log entry."""

    timestamp: UtcDatetime
    kind: SecurityEventKind
    subject: str
    detail: str = ""

    model_config = {"frozen": True}
