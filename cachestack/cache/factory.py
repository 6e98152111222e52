"""
cachestack — Cache Factory

Builds cache drivers from a driver kind and a parameter bag, and keeps a
registry of named cache instances built from configuration.

Key points:
- create_driver() is the factory StackCacheBackend uses for its members
- Redis and SQL drivers are imported lazily so their client libraries are
  only needed when selected
- create_cache() builds from a validated CacheConfig and registers by name

Examples:
    from cachestack.cache.factory import create_cache, create_driver

    # Uses env-configured driver (memory by default)
    cache = create_cache()

    # Build one driver directly
    l1 = create_driver("memory", {"max_size": 100}, default_lifetime=600)

    # Or a stack from explicit config
    from cachestack.config import CacheConfig, DriverKind
    cfg = CacheConfig(
        driver=DriverKind.STACK,
        stack=[{"driver": "memory"}, {"driver": "sql", "params": {"url": "sqlite+aiosqlite:///cache.db"}}],
    )
    stacked = create_cache(cfg, name="stacked")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..config import CacheConfig, DriverKind, get_config
from ..errors import ConfigurationError
from .backends.memory import MemoryCacheBackend
from .backends.null import NullCacheBackend
from .interface import CacheDriver

logger = logging.getLogger(__name__)

# Global cache instances registry
_cache_instances: dict[str, CacheDriver] = {}


def _resolve_kind(kind: DriverKind | str) -> DriverKind:
    try:
        return DriverKind(kind)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown cache driver: {kind}",
            details={"driver": str(kind), "supported": [k.value for k in DriverKind]},
        ) from e


def _load_optional(kind: DriverKind, package: str) -> type[CacheDriver]:
    """Import an optional driver module, turning import failures into configuration errors."""
    try:
        if kind == DriverKind.REDIS:
            from .backends.redis import RedisCacheBackend

            return RedisCacheBackend

        from .backends.sql import SqlCacheBackend

        return SqlCacheBackend
    except ImportError as e:
        logger.error(
            f"{kind.value} driver selected but its client library is not installed",
            extra={"package": package, "error": str(e)},
        )
        raise ConfigurationError(
            f"{kind.value} driver selected but its client library is unavailable. Install with: pip install '{package}'",
            details={"package": package, "error": str(e), "driver": kind.value},
        ) from e


def create_driver(
    kind: DriverKind | str,
    params: Mapping[str, Any] | None = None,
    default_lifetime: int | None = None,
) -> CacheDriver:
    """
    Build a single cache driver.

    Args:
        kind: Driver kind (e.g. "memory", "redis", "sql", "null", "stack")
        params: Keyword arguments for the driver. A 'lifetime' entry overrides
            default_lifetime.
        default_lifetime: Lifetime used when params has no 'lifetime'

    Returns:
        Configured driver instance

    Raises:
        ConfigurationError: If the kind is unknown or params are invalid
    """
    driver_kind = _resolve_kind(kind)
    options = dict(params or {})
    lifetime = options.pop("lifetime", default_lifetime)

    if driver_kind == DriverKind.REDIS and not options.get("redis_url"):
        raise ConfigurationError(
            "redis_url is required for the redis driver",
            details={"driver": "redis", "parameter": "redis_url"},
        )

    try:
        if driver_kind == DriverKind.MEMORY:
            return MemoryCacheBackend(default_lifetime=lifetime, **options)
        if driver_kind == DriverKind.NULL:
            return NullCacheBackend(default_lifetime=lifetime)
        if driver_kind == DriverKind.STACK:
            from .stack import StackCacheBackend

            return StackCacheBackend(stack=options.get("stack"), default_lifetime=lifetime)
        if driver_kind == DriverKind.REDIS:
            return _load_optional(driver_kind, "redis>=5.0.0")(default_lifetime=lifetime, **options)
        return _load_optional(driver_kind, "sqlalchemy[asyncio]>=2.0 aiosqlite")(default_lifetime=lifetime, **options)
    except ConfigurationError:
        raise
    except TypeError as e:
        # Unknown keyword in params
        raise ConfigurationError(
            f"Invalid parameters for {driver_kind.value} driver: {e}",
            details={"driver": driver_kind.value, "params": sorted(options), "error": str(e)},
        ) from e


def _params_for_kind(config: CacheConfig, driver: DriverKind) -> dict[str, Any]:
    """Config-level create_driver() params for one leaf driver kind."""
    if driver == DriverKind.MEMORY:
        return {"max_size": config.max_size, "namespace": config.namespace}
    if driver == DriverKind.REDIS:
        return {
            "redis_url": config.redis_url,
            "namespace": config.namespace,
            "max_connections": config.redis_max_connections,
            "socket_timeout": config.redis_socket_timeout,
        }
    if driver == DriverKind.SQL:
        params: dict[str, Any] = {"namespace": config.namespace}
        if config.sql_url:
            params["url"] = config.sql_url
        return params
    return {}


def _params_from_config(config: CacheConfig) -> dict[str, Any]:
    """
    Translate a CacheConfig into create_driver() params for its driver kind.

    Stack members inherit the config-level settings (namespace, max_size,
    redis_url, sql_url, ...) for every parameter they do not set themselves.
    """
    driver = DriverKind(config.driver)
    if driver != DriverKind.STACK:
        return _params_for_kind(config, driver)

    members = []
    for spec in config.stack:
        kind = DriverKind(spec.driver)
        params = dict(spec.params)
        if kind != DriverKind.STACK:
            for name, value in _params_for_kind(config, kind).items():
                params.setdefault(name, value)
        members.append({"driver": kind, "params": params})
    return {"stack": members}


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
) -> CacheDriver:
    """
    Create a cache driver instance based on configuration.

    Args:
        config: Cache configuration (uses global config if not provided)
        name: Cache instance name (for multiple cache instances)

    Returns:
        Configured cache driver instance

    Raises:
        ConfigurationError: If cache configuration is invalid or a driver is unavailable
    """
    if name in _cache_instances:
        logger.debug("Returning existing cache instance: %s", name)
        return _cache_instances[name]

    if config is None:
        config = get_config().cache

    driver = DriverKind(config.driver)
    logger.info(
        "Creating cache instance '%s' with driver: %s",
        name,
        driver.value,
        extra={"cache_name": name, "driver": driver.value},
    )

    try:
        cache = create_driver(driver, _params_from_config(config), default_lifetime=config.lifetime)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error creating cache instance '%s': %s",
            name,
            e,
            extra={"cache_name": name, "driver": driver.value, "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create cache instance '{name}': {e}",
            details={"cache_name": name, "driver": driver.value, "error": str(e)},
        ) from e

    _cache_instances[name] = cache
    logger.info(
        "Cache instance '%s' created successfully",
        name,
        extra={"cache_name": name, "driver": driver.value},
    )
    return cache


def get_cache(name: str = "default") -> CacheDriver:
    """
    Get an existing cache instance by name.

    If the instance doesn't exist, it is created from the global configuration.
    """
    if name not in _cache_instances:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return create_cache(name=name)

    return _cache_instances[name]


async def close_all_caches() -> None:
    """
    Close all cache instances and release resources.

    Call during graceful shutdown.
    """
    if not _cache_instances:
        logger.debug("No cache instances to close")
        return

    logger.info("Closing %d cache instance(s)...", len(_cache_instances))

    for name, cache in list(_cache_instances.items()):
        try:
            await cache.close()
            logger.info("Closed cache instance: %s", name)
        except Exception as e:
            logger.error(
                "Error closing cache instance '%s': %s",
                name,
                e,
                extra={"cache_name": name, "error": str(e)},
                exc_info=True,
            )

    _cache_instances.clear()
    logger.info("All cache instances closed")


def reset_cache_factory() -> None:
    """
    Clear all instance references without closing them.

    Used by tests. Use close_all_caches() for proper cleanup.
    """
    count = len(_cache_instances)
    _cache_instances.clear()
    logger.debug("Reset cache factory, cleared %d instance reference(s)", count)


def list_cache_instances() -> list[str]:
    """List all registered cache instance names."""
    return list(_cache_instances.keys())
