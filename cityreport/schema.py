"""
Centralized SQLite Schema Initialization.

Defines the canonical schema for the CityReport local database and
provides a single entry-point, :func:`initialize_schema`, that creates
all required tables idempotently.  A ``schema_version`` row records the
version the database was created at.

The domain data lives in one key-value table: each logical collection
(``reports``, ``alerts``, ``contacts``, ``admin_accounts``, ...) is a
single JSON document under its own key.

Usage::

    from cityreport.schema import initialize_schema

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3

from cityreport.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_VERSION_TABLE: str = """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

_KV_STORE_TABLE: str = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the recorded schema version, or ``0`` if unset."""
    row = conn.execute(
        "SELECT version FROM schema_version WHERE id = 1"
    ).fetchone()
    return row[0] if row is not None else 0


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Create the local tables and record the schema version.

    Table creation and the version row share one transaction and roll
    back together on failure.  Safe to call on every startup.
    """
    conn.execute(_VERSION_TABLE)
    conn.commit()

    current: int = _get_schema_version(conn)
    if current >= CURRENT_SCHEMA_VERSION:
        logger.info("Schema is up to date (version %d).", current)
        return

    try:
        conn.execute(_KV_STORE_TABLE)
        conn.execute(
            """
            INSERT INTO schema_version (id, version) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                          applied_at = CURRENT_TIMESTAMP
            """,
            (CURRENT_SCHEMA_VERSION,),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.error("Schema initialisation failed, rolled back.")
        raise

    logger.info("Schema initialised at version %d.", CURRENT_SCHEMA_VERSION)
