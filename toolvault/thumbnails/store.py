"""Key-value storage backends for the thumbnail cache.

The cache never talks to a storage medium directly; it is handed a `Store`.
Every mutation on a store is a single atomic key write or delete.
"""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path


class StoreError(Exception):
    """Base error for storage backends."""


class StoreWriteError(StoreError):
    """Raised when the storage medium rejects a write."""


class StoreFullError(StoreWriteError):
    """Raised when a write would exceed the storage quota."""


class Store(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one.

        Raises:
            StoreWriteError: If the medium rejects the write.
        """
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Deleting a missing key is a no-op."""
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """Enumerate all keys currently stored."""
        ...

    def close(self) -> None:
        """Release resources held by the store."""


class MemoryStore(Store):
    """In-process store with an optional quota, counted in characters.

    The quota mimics browser local storage, which rejects writes once the
    combined length of keys and values passes a fixed budget.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota_bytes
        self._used = 0
        self._lock = threading.RLock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._data.get(key)
            freed = len(key) + len(previous) if previous is not None else 0
            used = self._used - freed + len(key) + len(value)
            if self._quota is not None and used > self._quota:
                raise StoreFullError(
                    f"Quota exceeded writing {key!r}: {used} > {self._quota}"
                )
            self._data[key] = value
            self._used = used

    def remove(self, key: str) -> None:
        with self._lock:
            value = self._data.pop(key, None)
            if value is not None:
                self._used -= len(key) + len(value)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    @property
    def used_bytes(self) -> int:
        """Characters currently counted against the quota."""
        return self._used


class SQLiteStore(Store):
    """SQLite-backed persistent store."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._ensure_tables()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _ensure_tables(self) -> None:
        """Create database tables if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def get(self, key: str) -> str | None:
        try:
            row = self.conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            if isinstance(e, sqlite3.OperationalError) and "full" in str(e).lower():
                raise StoreFullError(str(e)) from e
            raise StoreWriteError(str(e)) from e

    def remove(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def keys(self) -> list[str]:
        try:
            rows = self.conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return [row["key"] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
