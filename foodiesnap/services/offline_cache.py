"""TTL cache used as the read-side fallback while offline.

All entries live in one map persisted under a single storage key. Expiry is
lazy: an entry older than its TTL is removed the next time that key is read.
Every read-modify-write of the map holds one lock, so concurrent writers
never drop each other's entries.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..constants import CACHED_DATA_AFTER_ERROR, CACHED_DATA_KEY, DEFAULT_CACHE_TTL_MS, NO_CACHED_DATA_OFFLINE
from .offline_queue import now_ms
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchResult:
    data: Any
    error: str | None = None
    from_cache: bool = False


class OfflineCache:
    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        is_online: Callable[[], bool] = lambda: True,
        default_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._storage = storage
        self._is_online = is_online
        self._default_ttl_ms = default_ttl_ms
        self._clock = clock
        self._lock = asyncio.Lock()

    async def _load_map(self) -> dict[str, dict[str, Any]]:
        stored = await self._storage.get_item(CACHED_DATA_KEY)
        if not stored:
            return {}
        cache_map = json.loads(stored)
        if not isinstance(cache_map, dict):
            raise ValueError("cached data record is not a mapping")
        return cache_map

    async def _save_map(self, cache_map: dict[str, dict[str, Any]]) -> None:
        await self._storage.set_item(CACHED_DATA_KEY, json.dumps(cache_map, default=str))

    async def set(self, key: str, data: Any, ttl: int | None = None) -> None:
        entry = {
            "data": data,
            "timestamp": self._clock(),
            "ttl": ttl or self._default_ttl_ms,
        }
        try:
            async with self._lock:
                cache_map = await self._load_map()
                cache_map[key] = entry
                await self._save_map(cache_map)
        except Exception:
            logger.exception("Failed to cache data for %s", key)

    async def get(self, key: str) -> Any | None:
        try:
            async with self._lock:
                cache_map = await self._load_map()
                entry = cache_map.get(key)
                if not entry:
                    return None

                if self._clock() - int(entry["timestamp"]) > int(entry["ttl"]):
                    del cache_map[key]
                    await self._save_map(cache_map)
                    return None

                return entry.get("data")
        except Exception:
            logger.exception("Failed to get cached data for %s", key)
            return None

    async def remove(self, key: str) -> bool:
        try:
            async with self._lock:
                cache_map = await self._load_map()
                if key not in cache_map:
                    return False
                del cache_map[key]
                await self._save_map(cache_map)
                return True
        except Exception:
            logger.exception("Failed to remove cached data for %s", key)
            return False

    async def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; return the count."""

        try:
            async with self._lock:
                cache_map = await self._load_map()
                doomed = [key for key in cache_map if key.startswith(prefix)]
                if not doomed:
                    return 0
                for key in doomed:
                    del cache_map[key]
                await self._save_map(cache_map)
                return len(doomed)
        except Exception:
            logger.exception("Failed to invalidate cached data for prefix %s", prefix)
            return 0

    async def clear(self) -> None:
        try:
            async with self._lock:
                await self._storage.remove_item(CACHED_DATA_KEY)
        except Exception:
            logger.exception("Failed to clear cached data")

    async def fetch_with_cache(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        *,
        ttl: int | None = None,
        retry_on_error: bool = False,
        fallback_data: Any | None = None,
    ) -> FetchResult:
        """Read through the cache: serve cached data offline, refresh it online."""

        if not self._is_online():
            cached = await self.get(key)
            if cached is not None:
                return FetchResult(data=cached, from_cache=True)
            if fallback_data is not None:
                return FetchResult(data=fallback_data, error=NO_CACHED_DATA_OFFLINE)
            return FetchResult(data=None, error=NO_CACHED_DATA_OFFLINE)

        try:
            data = await fetch_fn()
        except Exception as exc:
            logger.warning("Fetch for %s failed", key, exc_info=True)
            if retry_on_error:
                cached = await self.get(key)
                if cached is not None:
                    return FetchResult(data=cached, error=CACHED_DATA_AFTER_ERROR, from_cache=True)
            return FetchResult(data=fallback_data, error=str(exc) or "Failed to fetch data")

        await self.set(key, data, ttl)
        return FetchResult(data=data)


__all__ = ["FetchResult", "OfflineCache"]
