"""
cachestack — Stack Cache Driver

Chains several cache drivers into a priority-ordered fallback stack. Drivers
are listed in order of read priority (fastest first); the last driver is the
master and is the source of truth for writes.

- Reads (get, exists) walk the stack front to back and stop at the first hit.
- Writes (set) and invalidation (expire) walk back to front, master first.
- A failed master set aborts the write. A failed non-master set is followed
  by an expire() on that driver so it cannot serve a stale value.
- expire() is sent to every driver; only the master's result is reported.

Example:
    cache = StackCacheBackend(
        stack=[
            {"driver": "memory", "params": {"max_size": 500}},
            {"driver": "redis", "params": {"redis_url": "redis://localhost:6379/0"}},
        ],
        default_lifetime=3600,
    )
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ..config.schemas import DriverKind, DriverSpec
from ..errors import CacheError, ConfigurationError
from .interface import CacheDriver, CacheLookup

logger = logging.getLogger(__name__)

DriverFactory = Callable[[DriverKind | str, Mapping[str, Any] | None, int | None], CacheDriver]


def _unpack_spec(spec: DriverSpec | Mapping[str, Any]) -> tuple[DriverKind | str, dict[str, Any]]:
    """Split a stack entry into (driver kind, params)."""
    if isinstance(spec, DriverSpec):
        return spec.driver, dict(spec.params)

    if isinstance(spec, Mapping) and "driver" in spec:
        return spec["driver"], dict(spec.get("params") or {})

    raise ConfigurationError(
        "Each stack entry needs a 'driver' and optional 'params'",
        details={"entry": repr(spec)},
    )


class StackCacheBackend(CacheDriver):
    """
    Cache driver that loops through a list of drivers.

    The driver list is fixed at construction and never mutated, so one
    instance can serve concurrent callers. No cross-driver atomicity is
    provided: a set racing a get on the same key may observe a partially
    propagated value.
    """

    _drivers: tuple[CacheDriver, ...]
    _owns_drivers: bool
    _closed: bool

    def __init__(
        self,
        stack: Sequence[DriverSpec | Mapping[str, Any]] | None,
        default_lifetime: int | None = None,
        driver_factory: DriverFactory | None = None,
    ):
        """
        Build the stack from driver descriptors.

        Args:
            stack: Drivers in order of priority; the last entry is the master.
                Each entry is a DriverSpec or a mapping with 'driver' and 'params'.
            default_lifetime: Default lifetime, also inherited by members that
                do not set their own 'lifetime' param
            driver_factory: Callable building a driver from (kind, params,
                default_lifetime); defaults to cachestack.cache.factory.create_driver

        Raises:
            ConfigurationError: If the stack is missing or empty, or a member
                cannot be built
        """
        if not stack:
            raise ConfigurationError("Missing stack parameter.", details={"parameter": "stack"})

        super().__init__(default_lifetime)

        if driver_factory is None:
            # Deferred to avoid a circular import with the factory
            from .factory import create_driver

            driver_factory = create_driver

        drivers = []
        for spec in stack:
            kind, params = _unpack_spec(spec)
            drivers.append(driver_factory(kind, params, self.default_lifetime))

        self._adopt(drivers, owns_drivers=True)

    @classmethod
    def from_drivers(
        cls,
        drivers: Sequence[CacheDriver],
        default_lifetime: int | None = None,
    ) -> StackCacheBackend:
        """
        Build a stack from already constructed drivers.

        The caller keeps ownership: close() on the stack does not close them.
        """
        if not drivers:
            raise ConfigurationError("Missing stack parameter.", details={"parameter": "drivers"})

        instance = cls.__new__(cls)
        CacheDriver.__init__(instance, default_lifetime)
        instance._adopt(drivers, owns_drivers=False)
        return instance

    def _adopt(self, drivers: Sequence[CacheDriver], owns_drivers: bool) -> None:
        self._drivers = tuple(drivers)
        self._owns_drivers = owns_drivers
        self._closed = False
        logger.info(
            "Cache stack built with %d driver(s), master: %s",
            len(self._drivers),
            type(self._drivers[-1]).__name__,
            extra={"drivers": [type(d).__name__ for d in self._drivers]},
        )

    @property
    def drivers(self) -> tuple[CacheDriver, ...]:
        """Member drivers in read-priority order."""
        return self._drivers

    @property
    def master(self) -> CacheDriver:
        """The authoritative driver (last in the stack)."""
        if self._closed:
            raise CacheError("Cache stack is closed", details={"operation": "master"})
        return self._drivers[-1]

    @property
    def closed(self) -> bool:
        """True once close() has run; writes then report failure."""
        return self._closed

    def _refuse_closed(self, operation: str, key: str) -> bool:
        if self._closed:
            logger.warning(
                f"Cache stack {operation} called after close for key '{key}'",
                extra={"operation": operation, "key": key},
            )
        return self._closed

    def _log_failure(self, operation: str, key: str, tier: int, driver: CacheDriver, error: Exception) -> None:
        logger.warning(
            f"Cache stack {operation} raised in tier {tier} for key '{key}': {error}",
            extra={
                "operation": operation,
                "key": key,
                "tier": tier,
                "driver": type(driver).__name__,
                "error": str(error),
            },
            exc_info=True,
        )

    async def get(self, key: str, lifetime: int | None = 1) -> CacheLookup:
        """Return the first hit, searching drivers in priority order."""
        for tier, driver in enumerate(self._drivers):
            try:
                result = await driver.get(key, lifetime)
            except Exception as e:
                self._log_failure("get", key, tier, driver, e)
                continue

            if result.found:
                logger.debug(f"Cache stack hit for key '{key}' in tier {tier}", extra={"key": key, "tier": tier})
                return result

        return CacheLookup.miss()

    async def set(self, key: str, data: Any, lifetime: int | None = None) -> bool:
        """
        Store a value in every driver, master first.

        Returns:
            False if the master failed to store the value or the stack is closed
        """
        if self._refuse_closed("set", key):
            return False

        master = True
        last_tier = len(self._drivers) - 1

        for offset, driver in enumerate(reversed(self._drivers)):
            tier = last_tier - offset
            try:
                stored = await driver.set(key, data, lifetime)
            except Exception as e:
                self._log_failure("set", key, tier, driver, e)
                stored = False

            if not stored:
                if master:
                    logger.error(
                        f"Cache stack master failed to store key '{key}'",
                        extra={"key": key, "tier": tier, "driver": type(driver).__name__},
                    )
                    return False

                logger.warning(
                    f"Cache stack tier {tier} failed to store key '{key}', invalidating it",
                    extra={"key": key, "tier": tier, "driver": type(driver).__name__},
                )
                await self._invalidate(driver, key, tier)

            master = False

        return True

    async def _invalidate(self, driver: CacheDriver, key: str, tier: int) -> None:
        """Best-effort expire on a non-master driver whose write failed."""
        try:
            if not await driver.expire(key):
                logger.warning(
                    f"Cache stack tier {tier} could not invalidate key '{key}'",
                    extra={"key": key, "tier": tier, "driver": type(driver).__name__},
                )
        except Exception as e:
            self._log_failure("expire", key, tier, driver, e)

    async def exists(self, key: str, lifetime: int | None = 1) -> bool:
        """True if any driver holds a fresh entry, checked in priority order."""
        for tier, driver in enumerate(self._drivers):
            try:
                if await driver.exists(key, lifetime):
                    return True
            except Exception as e:
                self._log_failure("exists", key, tier, driver, e)

        return False

    async def expire(self, key: str) -> bool:
        """
        Expire key in every driver, master first.

        Returns:
            The master's result; other drivers cannot change it. False once
            the stack is closed.
        """
        if self._refuse_closed("expire", key):
            return False

        master = True
        success = True
        last_tier = len(self._drivers) - 1

        for offset, driver in enumerate(reversed(self._drivers)):
            tier = last_tier - offset
            try:
                expired = await driver.expire(key)
            except Exception as e:
                self._log_failure("expire", key, tier, driver, e)
                expired = False

            if not expired:
                if master:
                    logger.error(
                        f"Cache stack master failed to expire key '{key}'",
                        extra={"key": key, "tier": tier, "driver": type(driver).__name__},
                    )
                    success = False
                else:
                    logger.warning(
                        f"Cache stack tier {tier} failed to expire key '{key}'",
                        extra={"key": key, "tier": tier, "driver": type(driver).__name__},
                    )

            master = False

        return success

    async def get_stats(self) -> dict[str, Any]:
        """Collect statistics from every driver."""
        members: list[dict[str, Any]] = []
        for driver in self._drivers:
            try:
                members.append(await driver.get_stats())
            except Exception as e:
                logger.warning(f"Failed to collect stats from {type(driver).__name__}: {e}", extra={"error": str(e)})
                members.append({"backend": type(driver).__name__, "error": str(e)})

        return {
            "backend": "stack",
            "default_lifetime": self.default_lifetime,
            "size": len(self._drivers),
            "drivers": members,
        }

    async def close(self) -> None:
        """Close drivers this stack built, then release all references."""
        if self._owns_drivers:
            for driver in self._drivers:
                try:
                    await driver.close()
                except Exception as e:
                    logger.error(
                        f"Error closing cache driver {type(driver).__name__}: {e}",
                        extra={"driver": type(driver).__name__, "error": str(e)},
                        exc_info=True,
                    )

        self._drivers = ()
        self._closed = True
        logger.debug("Cache stack closed")
