"""
cachestack — Memory Cache Backend

In-process cache with LRU eviction. The medium has no native expiry, so the
driver keeps its own lifetime bookkeeping: each entry records when it was
written and the lifetime it was stored with, and stale entries are dropped
when read.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from ..interface import CacheDriver, CacheLookup, is_fresh

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheDriver):
    """
    In-memory cache driver with LRU eviction.

    Features:
    - LRU eviction when max_size is reached
    - Per-key lifetime with read-time freshness checks
    - Safe for concurrent tasks on one event loop

    Values are kept as the same Python objects, not serialized. The Redis and
    SQL drivers store JSON, so in a stack a value may come back from them with
    JSON types (a tuple as a list, non-string dict keys as strings) while the
    memory tier returns the original object. Store JSON-native values when a
    memory tier sits in front of a serializing master.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_lifetime: int | None = None,
        namespace: str = "cachestack",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize memory cache backend.

        Args:
            max_size: Maximum number of entries (LRU eviction when exceeded)
            default_lifetime: Default lifetime in seconds (0 = no expiry)
            namespace: Cache key namespace/prefix
            clock: Time source returning seconds since the epoch
        """
        super().__init__(default_lifetime)
        self.max_size = max_size
        self.namespace = namespace
        self._clock = clock

        # key -> (value, written_at, stored_lifetime)
        self._cache: OrderedDict[str, tuple[Any, float, int]] = OrderedDict()

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._expires = 0
        self._evictions = 0

        self._lock = asyncio.Lock()

    def _make_key(self, key: str) -> str:
        """Create namespaced cache key."""
        return f"{self.namespace}:{key}"

    def _lookup(self, cache_key: str, lifetime: int | None) -> tuple[bool, Any]:
        """Fetch a fresh entry, evicting it if stale. Caller holds the lock."""
        entry = self._cache.get(cache_key)
        if entry is None:
            return False, None

        value, written_at, stored_lifetime = entry
        if not is_fresh(written_at, stored_lifetime, self._get_lifetime(lifetime), self._clock()):
            del self._cache[cache_key]
            return False, None

        return True, value

    async def get(self, key: str, lifetime: int | None = 1) -> CacheLookup:
        """Retrieve value from cache."""
        if not key:
            logger.warning("Attempted to get cache value with empty key")
            return CacheLookup.miss()

        try:
            async with self._lock:
                cache_key = self._make_key(key)
                found, value = self._lookup(cache_key, lifetime)

                if not found:
                    self._misses += 1
                    return CacheLookup.miss()

                # Mark as recently used
                self._cache.move_to_end(cache_key)
                self._hits += 1
                return CacheLookup.hit(value)
        except Exception as e:
            logger.error(
                f"Unexpected error getting key '{key}' from memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            self._misses += 1
            return CacheLookup.miss()

    async def set(self, key: str, data: Any, lifetime: int | None = None) -> bool:
        """Store value in cache."""
        if not key:
            logger.warning("Attempted to set cache value with empty key")
            return False

        try:
            async with self._lock:
                cache_key = self._make_key(key)
                stored_lifetime = max(0, self._get_lifetime(lifetime))

                if cache_key not in self._cache and len(self._cache) >= self.max_size:
                    evicted_key, _ = self._cache.popitem(last=False)
                    self._evictions += 1
                    logger.debug(f"Evicted key from memory cache: {evicted_key}")

                self._cache[cache_key] = (data, self._clock(), stored_lifetime)
                self._cache.move_to_end(cache_key)
                self._sets += 1
                return True
        except Exception as e:
            logger.error(
                f"Unexpected error setting key '{key}' in memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "lifetime": lifetime, "error": str(e)},
                exc_info=True,
            )
            return False

    async def exists(self, key: str, lifetime: int | None = 1) -> bool:
        """Check if key exists and is fresh."""
        if not key:
            return False

        try:
            async with self._lock:
                found, _ = self._lookup(self._make_key(key), lifetime)
                return found
        except Exception as e:
            logger.error(
                f"Unexpected error checking existence of key '{key}' in memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def expire(self, key: str) -> bool:
        """Remove key from cache. Absent keys count as success."""
        if not key:
            logger.warning("Attempted to expire cache value with empty key")
            return False

        try:
            async with self._lock:
                if self._cache.pop(self._make_key(key), None) is not None:
                    self._expires += 1
                return True
        except Exception as e:
            logger.error(
                f"Unexpected error expiring key '{key}' in memory cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        async with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "backend": "memory",
                "size": len(self._cache),
                "max_size": self.max_size,
                "default_lifetime": self.default_lifetime,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
                "sets": self._sets,
                "expires": self._expires,
                "evictions": self._evictions,
                "namespace": self.namespace,
            }

    async def close(self) -> None:
        """Drop all entries held by this process."""
        async with self._lock:
            self._cache.clear()
        logger.debug(f"Memory cache backend closed for namespace '{self.namespace}'")
