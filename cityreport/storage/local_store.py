"""
Local Key-Value Store.

Fail-soft persistence primitive that every repository and the session
layer write through.  One JSON document per key; the backend is
injected so tests and ephemeral runs can swap SQLite for a dict.

Contract
--------
- ``get(key, default)`` never raises.  A missing key, a backend failure,
  or a corrupt document all log and return ``default``.
- ``set(key, value)`` never raises.  It returns ``False`` when the write
  could not be completed (the failure is logged at ERROR).
- ``remove(key)`` is idempotent and never raises.

The rest of the system keeps working (degrading to empty collections)
when storage is unavailable, corrupted, or full.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from typing import Optional, Protocol, TypeVar

from cityreport.database import DatabaseManager
from cityreport.errors import StorageError
from cityreport.logger import StructuredLogger
from cityreport.utils.general import convert_to_json_safe

T = TypeVar("T")


class KeyValueBackend(Protocol):
    """Raw string storage used by :class:`LocalStore`.

    Implementations raise :class:`StorageError` on any failure.
    """

    def read(self, key: str) -> Optional[str]: ...  # noqa: E704

    def write(self, key: str, value: str) -> None: ...  # noqa: E704

    def delete(self, key: str) -> None: ...  # noqa: E704


class MemoryBackend:
    """Process-local dict backend for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock: threading.Lock = threading.Lock()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class SQLiteBackend:
    """Backend over the ``kv_store`` table of the local SQLite database.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager``; its ``write_lock`` serialises
        every statement.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def read(self, key: str) -> Optional[str]:
        try:
            with self._db.write_lock:
                row = self._db.sqlite.execute(
                    "SELECT value FROM kv_store WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"read of '{key}' failed: {exc}") from exc
        return row["value"] if row is not None else None

    def write(self, key: str, value: str) -> None:
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO kv_store (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self._db.sqlite.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"write of '{key}' failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    "DELETE FROM kv_store WHERE key = ?",
                    (key,),
                )
                self._db.sqlite.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"delete of '{key}' failed: {exc}") from exc


class LocalStore:
    """Fail-soft JSON document store over a :class:`KeyValueBackend`.

    Parameters
    ----------
    backend:
        Where the serialised documents live.
    logger:
        Structured logger; every swallowed failure is reported here.
    """

    def __init__(self, backend: KeyValueBackend, logger: StructuredLogger) -> None:
        self._backend = backend
        self._logger = logger

    def get(self, key: str, default: T) -> T:
        """Return the decoded document under *key*, or *default*."""
        try:
            raw = self._backend.read(key)
        except Exception as exc:
            self._logger.error("Local read of '%s' failed: %s", key, exc)
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            self._logger.error(
                "Local document '%s' is corrupt, using default: %s", key, exc,
            )
            return default

    def set(self, key: str, value: object) -> bool:
        """Serialise *value* and write it under *key*.

        Returns ``True`` when the write succeeded.
        """
        try:
            payload: str = json.dumps(convert_to_json_safe(value), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            self._logger.error("Could not serialise '%s': %s", key, exc)
            return False

        try:
            self._backend.write(key, payload)
            return True
        except Exception as exc:
            self._logger.error("Local write of '%s' failed: %s", key, exc)
            return False

    def remove(self, key: str) -> None:
        """Delete *key*.  Missing keys and backend failures are ignored."""
        try:
            self._backend.delete(key)
        except Exception as exc:
            self._logger.error("Local delete of '%s' failed: %s", key, exc)
