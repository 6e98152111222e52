"""
cachestack — Cache Backends

Exports the always-available leaf drivers.

Redis and SQL drivers are lazy-loaded via factory.py to avoid import overhead.
"""

from .memory import MemoryCacheBackend
from .null import NullCacheBackend

__all__ = [
    "MemoryCacheBackend",
    "NullCacheBackend",
]
