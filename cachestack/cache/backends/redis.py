"""
cachestack — Redis Cache Backend

Asynchronous Redis cache driver with:
- JSON envelope per key recording write time and stored lifetime
- Native expiry via Redis EX for entries with a positive lifetime
- Read-time lifetime checks against the recorded write time
- Namespace prefixing for safe multi-tenant usage

Requires: redis>=5.0 with asyncio support

Example:
    cache = RedisCacheBackend(redis_url="redis://localhost:6379", namespace="app", default_lifetime=3600)
    await cache.set("greeting", {"msg": "hello"}, lifetime=60)
    result = await cache.get("greeting", lifetime=60)
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from ..interface import CacheDriver, CacheLookup, is_fresh

logger = logging.getLogger(__name__)

try:
    # redis-py asyncio client
    from redis.asyncio import Redis
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Redis async client is required but not installed. "
        "Install with: pip install 'redis>=5.0.0' or add 'redis' to your dependencies."
    ) from e


class RedisCacheBackend(CacheDriver):
    """
    Redis cache driver.

    Notes:
    - Keys are prefixed with the configured namespace to avoid collisions.
    - Values are stored as UTF-8 JSON envelopes: {"t": written_at, "l": lifetime, "d": data}.
    - Lifetime is applied via Redis EX seconds (None -> default, 0 -> no expiry).
    """

    def __init__(
        self,
        redis_url: str,
        namespace: str = "cachestack",
        default_lifetime: int | None = None,
        max_connections: int = 10,
        socket_timeout: int = 5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize Redis cache backend.

        Args:
            redis_url: Connection URL, e.g., redis://localhost:6379/0 or rediss:// for TLS
            namespace: Prefix for all keys
            default_lifetime: Default lifetime in seconds (0 => no expiry)
            max_connections: Connection pool size
            socket_timeout: Socket timeout in seconds
            clock: Time source used to stamp and check entries
        """
        if not redis_url:
            raise ValueError("redis_url is required")

        super().__init__(default_lifetime)
        self.namespace = namespace.strip() or "cachestack"
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._expires = 0

        # Lazy connection; connects on first command
        self._client = Redis.from_url(  # type: ignore[call-overload]
            url=redis_url,
            decode_responses=True,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
        )

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.namespace}:{key}"

    def _encode(self, data: Any, stored_lifetime: int) -> str:
        """Serialize a value into its envelope."""
        envelope = {"t": self._clock(), "l": stored_lifetime, "d": data}
        return json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def _decode(raw: str | bytes) -> dict[str, Any] | None:
        """Deserialize an envelope. Returns None if the payload is not one."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            envelope = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(
                f"Failed to decode cache envelope, treating as miss: {e}",
                extra={"data_preview": raw[:100], "error": str(e)},
            )
            return None

        if not isinstance(envelope, dict) or not {"t", "l", "d"} <= envelope.keys():
            logger.warning("Cache entry is not a cachestack envelope, treating as miss")
            return None
        return envelope

    async def _fetch(self, key: str, lifetime: int | None) -> dict[str, Any] | None:
        """Fetch a fresh envelope for key, or None."""
        raw = await self._client.get(self._make_key(key))
        if raw is None:
            return None

        envelope = self._decode(raw)
        if envelope is None:
            return None

        if not is_fresh(float(envelope["t"]), int(envelope["l"]), self._get_lifetime(lifetime), self._clock()):
            return None
        return envelope

    # ------------ Core Interface ------------

    async def get(self, key: str, lifetime: int | None = 1) -> CacheLookup:
        """Retrieve a value by key."""
        if not key:
            logger.warning("Attempted to get cache value with empty key")
            return CacheLookup.miss()

        try:
            envelope = await self._fetch(key, lifetime)
        except Exception as e:
            logger.error(
                f"Failed to get key '{key}' from Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            self._misses += 1
            return CacheLookup.miss()

        if envelope is None:
            self._misses += 1
            return CacheLookup.miss()

        self._hits += 1
        return CacheLookup.hit(envelope["d"])

    async def set(self, key: str, data: Any, lifetime: int | None = None) -> bool:
        """Store a value with its lifetime."""
        if not key:
            logger.warning("Attempted to set cache value with empty key")
            return False

        stored_lifetime = max(0, self._get_lifetime(lifetime))
        try:
            payload = self._encode(data, stored_lifetime)
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(data).__name__, "error": str(e)},
                exc_info=True,
            )
            return False

        try:
            ex = stored_lifetime if stored_lifetime > 0 else None
            # redis-py returns True or 'OK' depending on decode_responses
            res = await self._client.set(name=self._make_key(key), value=payload, ex=ex)
            success = bool(res)
            if success:
                self._sets += 1
            return success
        except Exception as e:
            logger.error(
                f"Failed to set key '{key}' in Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "lifetime": lifetime, "error": str(e)},
                exc_info=True,
            )
            return False

    async def exists(self, key: str, lifetime: int | None = 1) -> bool:
        """Check if a fresh entry exists."""
        if not key:
            return False

        try:
            return await self._fetch(key, lifetime) is not None
        except Exception as e:
            logger.error(
                f"Failed to check existence of key '{key}' in Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def expire(self, key: str) -> bool:
        """Delete a key. Absent keys count as success."""
        if not key:
            logger.warning("Attempted to expire cache value with empty key")
            return False

        try:
            deleted = await self._client.delete(self._make_key(key))
            self._expires += int(deleted)
            return True
        except Exception as e:
            logger.error(
                f"Failed to expire key '{key}' in Redis: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and connectivity."""
        stats: dict[str, Any] = {
            "backend": "redis",
            "namespace": self.namespace,
            "default_lifetime": self.default_lifetime,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": 0.0,
            "sets": self._sets,
            "expires": self._expires,
            "connected": False,
        }

        total_requests = self._hits + self._misses
        stats["hit_rate"] = round((self._hits / total_requests) * 100, 2) if total_requests else 0.0

        try:
            stats["connected"] = bool(await self._client.ping())
        except Exception as e:
            logger.warning(f"Failed to ping Redis: {e}", extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release resources."""
        try:
            await self._client.aclose()
            logger.info(f"Closed Redis cache backend for namespace '{self.namespace}'")
        except Exception as e:
            logger.error(
                f"Error closing Redis client: {e}", extra={"namespace": self.namespace, "error": str(e)}, exc_info=True
            )
        finally:
            try:
                await self._client.connection_pool.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting Redis connection pool: {e}", extra={"error": str(e)})
