"""
Database Abstraction Layer.

Implements the local-first, dual-store pattern for CityReport:

- **SQLite (local)**: the authoritative store.  Every write lands here
  first through :class:`~cityreport.storage.local_store.LocalStore`, so
  the application keeps working without network connectivity.

- **Supabase (remote)**: an advisory mirror reached through Edge
  Functions.  Pushes are best-effort and never block local writes.

This module only manages the raw *connections*; it contains no query
logic.

Security Note: Encryption at Rest
----------------------------------
The local SQLite database is **not** encrypted at rest.  Report data,
admin accounts (salted PBKDF2 hashes only), and the security event log
stored in ``cityreport_local.db`` are readable by anyone with file-system
access to the database file.

Usage (dependency injection at app startup)::

    from cityreport.database import DatabaseManager
    from cityreport.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="database"),
        timeout_s=config.SYNC_TIMEOUT_S,
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from supabase import Client as SupabaseClient
from supabase import ClientOptions, create_client

from cityreport.logger import StructuredLogger


class DatabaseManager:
    """Manages the local SQLite connection and the optional Supabase client.

    When ``supabase_url`` or ``supabase_key`` is empty or malformed the
    Supabase client is **not** created and the application runs in
    local-only mode.  Remote callers catch the ``RuntimeError`` raised by
    the ``supabase`` property and treat it as a silent sync failure.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (``https://xyz.supabase.co``).  May be
        empty to run local-only.
    supabase_key:
        The Supabase anonymous key.  May be empty to run local-only.
    sqlite_path:
        Filesystem path for the SQLite database file, or ``":memory:"``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    timeout_s:
        Timeout applied to every remote Edge Function call.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Union[Path, str],
        logger: StructuredLogger,
        timeout_s: int = 5,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False

        # --- Supabase (optional, local-first) ---
        self._supabase: Optional[SupabaseClient] = None
        if supabase_url and supabase_key:
            if urlparse(supabase_url).scheme != "https":
                self._logger.warning(
                    "Supabase URL is not https, running in local-only mode.",
                )
            else:
                try:
                    self._supabase = create_client(
                        supabase_url,
                        supabase_key,
                        options=ClientOptions(
                            function_client_timeout=timeout_s,
                            postgrest_client_timeout=timeout_s,
                            headers={"X-Client-Info": "cityreport-core"},
                        ),
                    )
                    self._logger.info("Supabase client initialized.")
                except (ValueError, TypeError) as exc:
                    self._logger.warning(
                        "Supabase credential format error: %s. Running in local-only mode.",
                        exc,
                    )
                except Exception as exc:
                    self._logger.error(
                        "Unexpected Supabase initialization failure: %s. "
                        "Running in local-only mode.",
                        exc,
                        exc_info=True,
                    )
        else:
            self._logger.warning(
                "Supabase credentials not configured, running in local-only mode."
            )

        # --- SQLite (always required) ---
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the client was not initialised (local-only mode).
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The application is running in local-only mode."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Return the lock serialising SQLite access across threads.

        All code that writes to SQLite should hold it::

            with db.write_lock:
                db.sqlite.execute("INSERT ...")
                db.sqlite.commit()
        """
        return self._write_lock

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Union[Path, str]) -> sqlite3.Connection:
        """Open (or create) a SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if str(path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
