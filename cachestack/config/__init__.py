"""
cachestack — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config
from .schemas import (
    DEFAULT_LIFETIME,
    CacheConfig,
    CacheStackConfig,
    DriverKind,
    DriverSpec,
    Environment,
    LogLevel,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    # Main config
    "CacheStackConfig",
    # Enums
    "Environment",
    "DriverKind",
    "LogLevel",
    # Config sections
    "CacheConfig",
    "DriverSpec",
    "DEFAULT_LIFETIME",
]
