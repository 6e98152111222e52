"""
cachestack — Pluggable Cache Drivers

A uniform async cache contract (get/set/exists/expire/output) implemented by
interchangeable drivers, plus a stack driver that chains several of them into
a priority-ordered fallback hierarchy.
"""

__version__ = "1.0.0"

from .cache import (
    CacheDriver,
    CacheLookup,
    StackCacheBackend,
    close_all_caches,
    create_cache,
    create_driver,
    get_cache,
)
from .errors import CacheMissError, CacheStackError, ConfigurationError

__all__ = [
    "CacheDriver",
    "CacheLookup",
    "StackCacheBackend",
    "create_cache",
    "create_driver",
    "get_cache",
    "close_all_caches",
    "CacheStackError",
    "ConfigurationError",
    "CacheMissError",
]
