"""
cachestack — Null Cache Backend

A driver that stores nothing. Every read misses and every write succeeds,
which lets a tier be switched off by configuration without reshaping a stack.
"""

from typing import Any

from ..interface import CacheDriver, CacheLookup


class NullCacheBackend(CacheDriver):
    """Cache driver that never holds data."""

    async def get(self, key: str, lifetime: int | None = 1) -> CacheLookup:
        return CacheLookup.miss()

    async def set(self, key: str, data: Any, lifetime: int | None = None) -> bool:
        return True

    async def exists(self, key: str, lifetime: int | None = 1) -> bool:
        return False

    async def expire(self, key: str) -> bool:
        return True

    async def get_stats(self) -> dict[str, Any]:
        return {"backend": "null", "default_lifetime": self.default_lifetime}
