"""Key-value register backends for client-side persistence."""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import structlog

from ..errors import CacheUnavailable


class KeyValueBackend(ABC):
    """
    Flat string-to-string register.

    Implementations raise CacheUnavailable for any read or write failure;
    callers decide whether to absorb it.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored text for a key, None if absent."""

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store text under a key, replacing any previous value atomically."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; removing an absent key is a no-op."""

    @abstractmethod
    def keys(self) -> list[str]:
        """All stored keys."""


class MemoryBackend(KeyValueBackend):
    """In-process register with an optional byte quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
            if used + len(key) + len(value) > self.quota_bytes:
                raise CacheUnavailable(
                    "Storage quota exceeded",
                    operation="write",
                    key=key,
                    context={"quota_bytes": self.quota_bytes, "used_bytes": used},
                )
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqliteBackend(KeyValueBackend):
    """SQLite-based register that survives process restarts."""

    def __init__(self, db_path: str = "crypto_tracker.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("storage.sqlite")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection, translating sqlite errors."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", db_path=str(self.db_path), error=str(e))
            raise CacheUnavailable(f"SQLite error: {e}", context={"db_path": str(self.db_path)}) from e
        finally:
            if conn:
                conn.close()

    def read(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def write(self, key: str, value: str) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, value),
                )
                conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()

    def keys(self) -> list[str]:
        with self._get_connection() as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv ORDER BY key")]
