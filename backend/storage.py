"""Local key-value stores backing the expiring cache.

Both stores are string -> string, bounded by a byte capacity, and raise
QuotaExceededError when a write would overflow it (the same contract a browser
localStorage gives the dashboard).
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Protocol


DEFAULT_CAPACITY = 5 * 1024 * 1024  # 5 MiB


class QuotaExceededError(Exception):
    """Raised when a write would push the store past its capacity."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryStore:
    """In-process store. Used by tests and when no cache file is configured."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._data: dict[str, str] = {}
        self._capacity = capacity
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            current = sum(_entry_size(k, v) for k, v in self._data.items() if k != key)
            if current + _entry_size(key, value) > self._capacity:
                raise QuotaExceededError(f"Storing '{key}' exceeds {self._capacity} bytes")
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def size(self) -> int:
        with self._lock:
            return sum(_entry_size(k, v) for k, v in self._data.items())


class SQLiteStore:
    """File-backed store; survives process restarts."""

    def __init__(self, path: str, capacity: int = DEFAULT_CAPACITY):
        self._capacity = capacity
        self._lock = threading.Lock()
        # Shared between the event loop and the scheduler thread
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )

    def get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            (current,) = self._conn.execute(
                "SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) "
                "FROM kv WHERE key != ?",
                (key,),
            ).fetchone()
            if current + _entry_size(key, value) > self._capacity:
                raise QuotaExceededError(f"Storing '{key}' exceeds {self._capacity} bytes")
            with self._conn:
                self._conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )

    def remove(self, key: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        with self._lock:
            return [r[0] for r in self._conn.execute("SELECT key FROM kv")]

    def size(self) -> int:
        with self._lock:
            (total,) = self._conn.execute(
                "SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) FROM kv"
            ).fetchone()
        return int(total)

    def close(self) -> None:
        self._conn.close()
