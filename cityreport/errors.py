"""
Error Taxonomy.

``ValidationError`` and ``AuthError`` are surfaced to callers with a
human-readable message.  ``StorageError`` and ``SyncError`` stay inside
the storage and sync layers: they are caught, logged, and the operation
continues with degraded local state.
"""

from __future__ import annotations


class CityReportError(Exception):
    """Base class for every error raised by the CityReport core."""


class ValidationError(CityReportError):
    """Malformed input: email shape, password policy, missing field."""


class AuthError(CityReportError):
    """Bad credentials, locked account, missing/expired session or role.

    Lockout and invalid credentials are distinguished by message only.
    """


class ConfigError(CityReportError):
    """Remote configuration is missing or malformed."""


class StorageError(CityReportError):
    """A local store backend failed to read or write."""


class SyncError(CityReportError):
    """A remote push was rejected, timed out, or could not be sent."""
