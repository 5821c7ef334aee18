"""
Data Models Package.

Re-exports all Pydantic models:
    from cityreport.models import Report, Alert, Contact, Session
    from cityreport.models import ReportStatus, AdminRole, SecurityEventKind
"""

from __future__ import annotations

from cityreport.models.account import AdminUser, AuthAccount
from cityreport.models.alert import Alert
from cityreport.models.auth_models import RemoteAuthResponse, ValidationResult
from cityreport.models.contact import Contact
from cityreport.models.enums import (
    AdminRole,
    AlertType,
    ContactCategory,
    OutboxStatus,
    ReportPriority,
    ReportStatus,
    SecurityEventKind,
    SessionStrength,
)
from cityreport.models.report import Report, ReportStatistics
from cityreport.models.security_event import SecurityEvent
from cityreport.models.session import Session

__all__ = [
    "AdminRole",
    "AdminUser",
    "Alert",
    "AlertType",
    "AuthAccount",
    "Contact",
    "ContactCategory",
    "OutboxStatus",
    "RemoteAuthResponse",
    "Report",
    "ReportPriority",
    "ReportStatistics",
    "ReportStatus",
    "SecurityEvent",
    "SecurityEventKind",
    "Session",
    "SessionStrength",
    "ValidationResult",
]
