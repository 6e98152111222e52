"""
cachestack — Cache Driver Interface

Defines the abstract contract that every cache driver implements, and the
CacheLookup result returned by get().

Lifetime conventions shared by all drivers:
- None: use the driver's configured default lifetime
- 0: never expire (exempt from passive expiry until expire() is called)
- >0: expire that many seconds after the value was written
"""

from __future__ import annotations

import io
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import IO, Any

from ..config.schemas import DEFAULT_LIFETIME
from ..errors import CacheMissError


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """
    Result of a cache read.

    found distinguishes a miss from a stored falsy value: a cached False,
    0, "" or None is still a hit.
    """

    found: bool
    value: Any = None

    @classmethod
    def hit(cls, value: Any) -> CacheLookup:
        return cls(found=True, value=value)

    @classmethod
    def miss(cls) -> CacheLookup:
        return _MISS

    def __bool__(self) -> bool:
        return self.found

    def value_or(self, default: Any = None) -> Any:
        """Return the cached value, or default on a miss."""
        return self.value if self.found else default

    def unwrap(self) -> Any:
        """Return the cached value, raising CacheMissError on a miss."""
        if not self.found:
            raise CacheMissError()
        return self.value


_MISS = CacheLookup(found=False)


def is_fresh(written_at: float, stored_lifetime: int, read_lifetime: int, now: float) -> bool:
    """
    Decide whether an entry is still servable.

    Entries stored with lifetime 0 never expire passively. Otherwise the
    entry must be within both the lifetime it was stored with and the
    lifetime requested by the reader (a read lifetime of 0 imposes no limit).
    """
    if stored_lifetime == 0:
        return True
    if now > written_at + stored_lifetime:
        return False
    if read_lifetime > 0 and now > written_at + read_lifetime:
        return False
    return True


class CacheDriver(ABC):
    """
    Abstract base class for cache drivers.

    Leaf drivers wrap a concrete storage medium; StackCacheBackend composes
    several drivers behind this same contract. output() is implemented once
    here on top of get().
    """

    def __init__(self, default_lifetime: int | None = None) -> None:
        """
        Args:
            default_lifetime: Lifetime in seconds used when an operation is
                given lifetime=None (defaults to DEFAULT_LIFETIME)
        """
        if default_lifetime is None:
            default_lifetime = DEFAULT_LIFETIME
        self.default_lifetime = max(0, int(default_lifetime))

    @abstractmethod
    async def get(self, key: str, lifetime: int | None = 1) -> CacheLookup:
        """
        Retrieve a cached value.

        Args:
            key: Cache key
            lifetime: Maximum age in seconds for the value to count as fresh

        Returns:
            CacheLookup.hit(value) if present and fresh, CacheLookup.miss() otherwise
        """

    @abstractmethod
    async def set(self, key: str, data: Any, lifetime: int | None = None) -> bool:
        """
        Store a value.

        Args:
            key: Cache key
            data: Value to store
            lifetime: Lifetime in seconds (None = default, 0 = never expire)

        Returns:
            True if stored successfully, False otherwise
        """

    @abstractmethod
    async def exists(self, key: str, lifetime: int | None = 1) -> bool:
        """
        Check whether a fresh entry exists for key.

        Returns:
            True if present and fresh under lifetime
        """

    @abstractmethod
    async def expire(self, key: str) -> bool:
        """
        Remove any entry for key regardless of its lifetime.

        Expiring an absent key is not an error.

        Returns:
            True on success, False if the backend failed
        """

    async def output(self, key: str, lifetime: int | None = 1, sink: IO[Any] | None = None) -> bool:
        """
        Write a cached value directly to an output sink.

        Args:
            key: Cache key
            lifetime: Maximum age in seconds
            sink: Writable stream (defaults to sys.stdout)

        Returns:
            True if a value was found and written, False on a miss
        """
        result = await self.get(key, lifetime)
        if not result.found:
            return False

        if sink is None:
            sink = sys.stdout

        data = result.value
        if isinstance(data, bytes | bytearray):
            # Text streams expose their binary layer as .buffer
            buffer = getattr(sink, "buffer", None)
            if buffer is not None:
                buffer.write(bytes(data))
            elif isinstance(sink, io.TextIOBase):
                sink.write(bytes(data).decode("utf-8", errors="replace"))
            else:
                sink.write(bytes(data))
        else:
            sink.write(data if isinstance(data, str) else str(data))
        return True

    async def get_stats(self) -> dict[str, Any]:
        """Get driver statistics."""
        return {
            "backend": type(self).__name__,
            "default_lifetime": self.default_lifetime,
        }

    async def close(self) -> None:
        """Release resources held by the driver."""
        return None

    def _get_lifetime(self, lifetime: int | None) -> int:
        """Resolve an unspecified lifetime to the configured default."""
        return self.default_lifetime if lifetime is None else int(lifetime)
