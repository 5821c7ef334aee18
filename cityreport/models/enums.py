"""
Shared Enumerations for CityReport Models.

All string enumerations for type-safe field constraints.  StrEnum values
compare equal to their string equivalents, so ``report.status == "new"``
works as expected and JSON round-trips keep plain strings.
"""

from __future__ import annotations

from enum import StrEnum


class ReportStatus(StrEnum):
    """Lifecycle of a citizen report."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class ReportPriority(StrEnum):
    """Triage priority assigned by staff."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(StrEnum):
    """Severity of a public broadcast alert."""

    INFO = "info"
    WARNING = "warning"
    EMERGENCY = "emergency"


class ContactCategory(StrEnum):
    """Emergency contact directory sections."""

    POLICE = "police"
    FIRE = "fire"
    MEDICAL = "medical"
    MUNICIPAL = "municipal"
    OTHER = "other"


class AdminRole(StrEnum):
    """Roles for staff accounts.  Citizens never authenticate."""

    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"


class SecurityEventKind(StrEnum):
    """Kinds of entries written to the append-only security log."""

    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_INVALIDATED = "SESSION_INVALIDATED"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_CHANGE_FAILED = "PASSWORD_CHANGE_FAILED"
    EMAIL_CHANGED = "EMAIL_CHANGED"
    EMAIL_CHANGE_FAILED = "EMAIL_CHANGE_FAILED"
    PASSWORD_RESET_BY_ADMIN = "PASSWORD_RESET_BY_ADMIN"
    PASSWORD_RESET_FAILED = "PASSWORD_RESET_FAILED"


class SessionStrength(StrEnum):
    """Coarse freshness indicator shown next to the signed-in user."""

    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


class OutboxStatus(StrEnum):
    """State of an entry in the optional durable sync outbox."""

    PENDING = "pending"
    SYNCED = "synced"
    PERMANENTLY_FAILED = "permanently_failed"
