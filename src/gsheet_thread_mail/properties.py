"""Key-value property store for state that survives between runs.

The store only ever holds a handful of string keys (the current thread
ID and the archived "last known" thread ID), so any backend exposing
get/set/set_many will do.

Backends:
- SQLitePropertyStore: single-file store at ~/.gsheet-thread-mail/
- MemoryPropertyStore: dict-backed, for tests and dry runs
"""

from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Default PRAGMAs for all connections
DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "busy_timeout": 5000,
}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS properties (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT (datetime('now'))
);
"""

UPSERT_PROPERTY_SQL = """INSERT INTO properties (key, value, updated_at)
    VALUES (?, ?, datetime('now'))
    ON CONFLICT(key) DO UPDATE SET
        value = excluded.value,
        updated_at = excluded.updated_at"""


@runtime_checkable
class PropertyStore(Protocol):
    """Capability interface for persisted string properties."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, values: Mapping[str, str]) -> None:
        """Write all of `values` or none of them."""
        ...


class MemoryPropertyStore:
    """In-process property store."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def set_many(self, values: Mapping[str, str]) -> None:
        data = dict(self._data)
        data.update(values)
        self._data = data

    def snapshot(self) -> dict[str, str]:
        """Return a copy of all stored properties."""
        return dict(self._data)


def create_connection(db_path: Path) -> sqlite3.Connection:
    """
    Create a database connection with standard configuration.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Configured connection with WAL mode and busy timeout
    """
    conn = sqlite3.connect(db_path)
    for pragma, value in DEFAULT_PRAGMAS.items():
        conn.execute(f"PRAGMA {pragma}={value}")
    return conn


class SQLitePropertyStore:
    """
    Property store backed by a single SQLite table.

    The database is created lazily on first access. New database files
    get 0600 permissions since they may hold mailbox identifiers.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        """Get the database file path."""
        return self._db_path

    def exists(self) -> bool:
        """Check if the database file has been created."""
        return self._db_path.exists()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        is_new_db = not self._db_path.exists()

        conn = create_connection(self._db_path)

        # Must be done after sqlite3.connect() creates the file
        if is_new_db:
            try:
                os.chmod(self._db_path, 0o600)
                logger.debug("Set secure permissions (0600) on %s", self._db_path)
            except OSError as e:
                logger.warning(
                    "Could not set secure permissions on %s: %s",
                    self._db_path,
                    e,
                )

        conn.executescript(SCHEMA_SQL)
        conn.commit()
        self._conn = conn
        return conn

    def get(self, key: str) -> str | None:
        row = (
            self._get_conn()
            .execute("SELECT value FROM properties WHERE key = ?", (key,))
            .fetchone()
        )
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._get_conn()
        conn.execute(UPSERT_PROPERTY_SQL, (key, value))
        conn.commit()
        logger.debug("Stored property %s", key)

    def set_many(self, values: Mapping[str, str]) -> None:
        """Upsert several properties in one transaction."""
        conn = self._get_conn()
        try:
            conn.executemany(UPSERT_PROPERTY_SQL, list(values.items()))
        except sqlite3.Error:
            conn.rollback()
            raise
        conn.commit()
        logger.debug("Stored properties %s", ", ".join(values))

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SQLitePropertyStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
