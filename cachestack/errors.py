"""
cachestack — Core Error Types

Defines the exception hierarchy for the cachestack runtime.
All exceptions inherit from CacheStackError for consistent error handling.

Drivers do not raise on backend I/O failure: they log and report a miss or
False. Exceptions are reserved for construction-time problems and for callers
that explicitly ask for a value via CacheLookup.unwrap().
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes carried by every CacheStackError."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CACHE_FAILURE = "CACHE_FAILURE"
    CACHE_MISS = "CACHE_MISS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CacheStackError(Exception):
    """Base exception for all cachestack errors."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary (for logs and CLI output)."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CacheStackError):
    """Raised when configuration is invalid or missing."""

    error_code = ErrorCode.CONFIGURATION_ERROR


class CacheError(CacheStackError):
    """Base exception for cache-related errors."""

    error_code = ErrorCode.CACHE_FAILURE


class CacheMissError(CacheError):
    """Raised when a value is demanded from a lookup that found nothing."""

    error_code = ErrorCode.CACHE_MISS

    def __init__(self, key: str | None = None):
        message = f"Cache miss: {key}" if key is not None else "Cache miss"
        super().__init__(message, {"key": key})
        self.key = key
