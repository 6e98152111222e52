"""
cachestack — Cache Module

Provides the cache driver contract, leaf drivers and the stack composite.

- interface.py: CacheDriver contract and CacheLookup result
- stack.py: StackCacheBackend, a priority-ordered fallback chain of drivers
- factory.py: Driver construction and named instance registry
- backends/: Leaf drivers (memory and null always; redis and sql lazy-loaded)

Usage:
    from cachestack.cache import create_cache

    cache = create_cache()
    await cache.set("key", "value", lifetime=3600)
    result = await cache.get("key", lifetime=3600)
    if result.found:
        ...
"""

from .factory import (
    close_all_caches,
    create_cache,
    create_driver,
    get_cache,
    list_cache_instances,
    reset_cache_factory,
)
from .interface import CacheDriver, CacheLookup
from .stack import StackCacheBackend

__all__ = [
    # Factory functions
    "create_cache",
    "create_driver",
    "get_cache",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Interface
    "CacheDriver",
    "CacheLookup",
    # Composite
    "StackCacheBackend",
]
