"""Expiring key-value cache over a pluggable store, plus cache-aside and SWR wrappers."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Any, Awaitable, Callable

from storage import DEFAULT_CAPACITY, KeyValueStore, MemoryStore, QuotaExceededError, SQLiteStore

logger = logging.getLogger(__name__)

CACHE_PREFIX   = "mlb_hr_hub_"
DEFAULT_TTL    = 60 * 60 * 1000        # 1 h in ms
HISTORICAL_TTL = 24 * 60 * 60 * 1000   # 24 h: completed seasons and all-time records

CACHE_PATH     = os.getenv("HR_HUB_CACHE_PATH", "")
CACHE_CAPACITY = int(os.getenv("HR_HUB_CACHE_CAPACITY", str(DEFAULT_CAPACITY)))

Producer = Callable[[], Awaitable[Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ExpiringCache:
    def __init__(
        self,
        store: KeyValueStore,
        prefix: str = CACHE_PREFIX,
        default_ttl: int = DEFAULT_TTL,
        clock: Callable[[], int] = _now_ms,
    ):
        self._store = store
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._clock = clock

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def _read_entry(self, full_key: str) -> dict | None:
        """Parse a stored entry; corrupt entries are removed and read as a miss."""
        try:
            raw = self._store.get(full_key)
        except Exception as exc:
            logger.error("Cache read error for %s: %s", full_key, exc)
            return None
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            return {
                "value":    entry["value"],
                "storedAt": int(entry["storedAt"]),
                "ttl":      int(entry["ttl"]),
            }
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Dropping corrupt cache entry %s: %s", full_key, exc)
            self._remove(full_key)
            return None

    def _remove(self, full_key: str) -> None:
        try:
            self._store.remove(full_key)
        except Exception as exc:
            logger.error("Cache remove error for %s: %s", full_key, exc)

    def _expired(self, entry: dict, now: int) -> bool:
        return now - entry["storedAt"] > entry["ttl"]

    def get(self, key: str) -> Any | None:
        full_key = self._prefix + key
        entry = self._read_entry(full_key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            self._remove(full_key)
            return None
        logger.debug("Cache HIT: %s", key)
        return entry["value"]

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        full_key = self._prefix + key
        try:
            payload = json.dumps({"value": value, "storedAt": self._clock(), "ttl": ttl})
        except (TypeError, ValueError) as exc:
            logger.error("Cache write error for %s: %s", key, exc)
            return

        try:
            self._store.set(full_key, payload)
        except QuotaExceededError:
            logger.warning("Cache quota exceeded, clearing expired entries...")
            try:
                self.sweep_expired()
                self._store.set(full_key, payload)
            except QuotaExceededError:
                logger.error("Cache still full after cleanup, dropping %s", key)
                return
            except Exception as exc:
                logger.error("Cache cleanup failed, dropping %s: %s", key, exc)
                return
        except Exception as exc:
            logger.error("Cache write error for %s: %s", key, exc)
            return
        logger.debug("Cache SET: %s (TTL: %dmin)", key, ttl // 60_000)

    def _own_keys(self) -> list[str]:
        return [k for k in self._store.keys() if k.startswith(self._prefix)]

    def sweep_expired(self) -> int:
        """Remove expired (and unreadable) entries under this namespace."""
        now = self._clock()
        removed = 0
        for full_key in self._own_keys():
            entry = self._read_entry(full_key)
            if entry is None:
                removed += 1
                continue
            if self._expired(entry, now):
                self._remove(full_key)
                removed += 1
        return removed

    def clear_all(self) -> int:
        keys = self._own_keys()
        for full_key in keys:
            self._store.remove(full_key)
        logger.info("Cache cleared (%d entries)", len(keys))
        return len(keys)

    def status(self) -> dict:
        keys = self._own_keys()
        size = getattr(self._store, "size", None)
        return {
            "entries": len(keys),
            "bytes": size() if callable(size) else None,
            "prefix": self._prefix,
            "default_ttl_ms": self._default_ttl,
        }


def _build_store() -> KeyValueStore:
    if CACHE_PATH:
        return SQLiteStore(CACHE_PATH, capacity=CACHE_CAPACITY)
    return MemoryStore(capacity=CACHE_CAPACITY)


# Global instance
HR_CACHE = ExpiringCache(_build_store())


# ── Wrappers ──────────────────────────────────────────────────────────────────

async def cached_fetch(
    key: str,
    producer: Producer,
    ttl: int | None = None,
    *,
    cache: ExpiringCache | None = None,
) -> Any:
    """Return the cached value for ``key``, or await ``producer`` and cache its result.

    Producer failures propagate and nothing is cached, so the next call retries.
    """
    cache = HR_CACHE if cache is None else cache
    cached = cache.get(key)
    if cached is not None:
        return cached

    logger.debug("Cache MISS: %s - fetching...", key)
    value = await producer()
    cache.set(key, value, ttl)
    return value


_revalidations: set[asyncio.Task] = set()


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def stale_while_revalidate(
    key: str,
    producer: Producer,
    on_fresh: Callable[[Any], None] | None = None,
    ttl: int | None = None,
    *,
    cache: ExpiringCache | None = None,
    refresh_on_miss: bool = True,
) -> Any | None:
    """Return whatever is cached for ``key`` right away and refresh it in the background.

    Must be called from inside a running event loop. ``on_fresh`` fires only when
    the refreshed value differs structurally from what was returned. Refresh
    failures are logged; the cached value stays in place. With
    ``refresh_on_miss=False`` a miss returns None and schedules nothing.
    """
    cache = HR_CACHE if cache is None else cache
    cached = cache.get(key)
    if cached is None and not refresh_on_miss:
        return None

    async def _revalidate() -> None:
        try:
            fresh = await producer()
        except Exception as exc:
            logger.error("Error revalidating %s: %s", key, exc)
            return
        cache.set(key, fresh, ttl)
        if cached is None or _canonical(cached) != _canonical(fresh):
            logger.info("Fresh data for: %s", key)
            if on_fresh is not None:
                on_fresh(fresh)

    task = asyncio.get_running_loop().create_task(_revalidate())
    _revalidations.add(task)
    task.add_done_callback(_revalidations.discard)
    return cached


async def drain_revalidations() -> None:
    """Wait for all in-flight background refreshes to settle."""
    if _revalidations:
        await asyncio.gather(*list(_revalidations), return_exceptions=True)
