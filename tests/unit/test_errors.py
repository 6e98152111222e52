"""
cachestack — Error Type Tests
"""

import pytest

from cachestack.errors import (
    CacheError,
    CacheMissError,
    CacheStackError,
    ConfigurationError,
    ErrorCode,
)


def test_to_dict() -> None:
    error = ConfigurationError("Missing stack parameter.", details={"parameter": "stack"})

    assert error.to_dict() == {
        "error": "ConfigurationError",
        "error_code": "CONFIGURATION_ERROR",
        "message": "Missing stack parameter.",
        "details": {"parameter": "stack"},
    }


def test_details_default_to_empty() -> None:
    assert CacheStackError("boom").details == {}
    assert CacheStackError("boom").error_code == ErrorCode.INTERNAL_ERROR


@pytest.mark.parametrize(
    ("key", "message"),
    [("user:1", "Cache miss: user:1"), (None, "Cache miss")],
)
def test_cache_miss_error(key: str | None, message: str) -> None:
    error = CacheMissError(key)

    assert isinstance(error, CacheError)
    assert error.key == key
    assert str(error) == message
    assert error.error_code == ErrorCode.CACHE_MISS


def test_hierarchy() -> None:
    assert issubclass(ConfigurationError, CacheStackError)
    assert issubclass(CacheError, CacheStackError)
    assert CacheError("x").error_code == ErrorCode.CACHE_FAILURE
