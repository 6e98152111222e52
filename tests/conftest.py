"""
cachestack — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
"""

import logging
import os
import socket
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock

import pytest

from cachestack.cache.interface import CacheDriver, CacheLookup

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


def is_redis_available() -> bool:
    """Check if a Redis server is available for testing."""
    try:
        with socket.create_connection(("localhost", 6379), timeout=1):
            return True
    except OSError:
        return False


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip tests marked `redis` when no server is listening."""
    if is_redis_available():
        return
    skip_redis = pytest.mark.skip(reason="Redis server not available")
    for item in items:
        if item.get_closest_marker("redis") is not None:
            item.add_marker(skip_redis)


class FakeClock:
    """Manually advanced time source for lifetime tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed epoch."""
    return FakeClock()


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def mock_driver() -> Callable[..., MagicMock]:
    """
    Factory for mock cache drivers.

    Each result argument is either the value the operation returns or an
    exception it raises. Passing a shared `calls` list records (name, operation)
    tuples in call order across drivers.
    """

    def _make(
        name: str = "driver",
        calls: list[tuple[str, str]] | None = None,
        get: Any = None,
        set: Any = True,
        exists: Any = False,
        expire: Any = True,
    ) -> MagicMock:
        driver = MagicMock(spec=CacheDriver)
        driver.name = name

        def respond(operation: str, result: Any) -> Callable[..., Any]:
            def _side_effect(*args: Any, **kwargs: Any) -> Any:
                if calls is not None:
                    calls.append((name, operation))
                if isinstance(result, BaseException):
                    raise result
                return result

            return _side_effect

        driver.get.side_effect = respond("get", CacheLookup.miss() if get is None else get)
        driver.set.side_effect = respond("set", set)
        driver.exists.side_effect = respond("exists", exists)
        driver.expire.side_effect = respond("expire", expire)
        driver.get_stats.return_value = {"backend": name}
        return driver

    return _make


@pytest.fixture(autouse=True)
def reset_cache_state() -> Generator[None, None, None]:
    """Reset the cache factory registry and config singleton after each test."""
    yield
    from cachestack.cache.factory import reset_cache_factory
    from cachestack.config import loader

    reset_cache_factory()
    loader._config_instance = None


@pytest.fixture(autouse=True)
def restore_package_logger() -> Generator[None, None, None]:
    """Undo handler and level changes made by setup_logging()."""
    package_logger = logging.getLogger("cachestack")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
