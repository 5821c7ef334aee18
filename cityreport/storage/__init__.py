"""
Local Storage Package.

``LocalStore`` is the authoritative persistence primitive; backends are
injected so the same code runs over SQLite or an in-memory dict.
"""

from cityreport.storage.local_store import (
    KeyValueBackend,
    LocalStore,
    MemoryBackend,
    SQLiteBackend,
)

__all__ = [
    "KeyValueBackend",
    "LocalStore",
    "MemoryBackend",
    "SQLiteBackend",
]
