"""
cachestack — SQL Cache Backend Tests

Runs the SQL driver against a temporary SQLite database through aiosqlite.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest

from cachestack.cache.backends.sql import SqlCacheBackend


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


class TestSqlCacheBackend:
    """Test suite for SqlCacheBackend."""

    @pytest.fixture
    async def cache(self, tmp_path: Path, clock: Any) -> AsyncGenerator[SqlCacheBackend, None]:
        cache = SqlCacheBackend(
            url=sqlite_url(tmp_path / "cache.db"),
            namespace="test",
            default_lifetime=3600,
            clock=clock,
        )
        yield cache
        await cache.close()

    async def test_creates_database_lazily(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "dir" / "cache.db"
        cache = SqlCacheBackend(url=sqlite_url(db_path))
        try:
            assert not db_path.exists()
            assert await cache.set("key", "value") is True
            assert db_path.exists()
        finally:
            await cache.close()

    async def test_set_and_get(self, cache: SqlCacheBackend) -> None:
        assert await cache.set("key1", {"msg": "hello", "n": [1, 2]}) is True

        result = await cache.get("key1")
        assert result.found is True
        assert result.value == {"msg": "hello", "n": [1, 2]}

        stats = await cache.get_stats()
        assert stats["backend"] == "sql"
        assert stats["hits"] == 1
        assert stats["sets"] == 1

    async def test_falsy_values_are_hits(self, cache: SqlCacheBackend) -> None:
        for key, value in {"false": False, "zero": 0, "empty": "", "none": None}.items():
            await cache.set(key, value)

        for key, value in {"false": False, "zero": 0, "empty": "", "none": None}.items():
            result = await cache.get(key)
            assert result.found is True
            assert result.value == value

    async def test_get_missing(self, cache: SqlCacheBackend) -> None:
        assert (await cache.get("missing")).found is False
        assert (await cache.get_stats())["misses"] == 1

    async def test_overwrite(self, cache: SqlCacheBackend) -> None:
        await cache.set("key1", "value1")
        await cache.set("key1", "value2")

        assert (await cache.get("key1")).value == "value2"

    async def test_unserializable_value(self, cache: SqlCacheBackend) -> None:
        assert await cache.set("key1", object()) is False
        assert (await cache.get("key1")).found is False

    async def test_exists_and_expire(self, cache: SqlCacheBackend) -> None:
        assert await cache.exists("key1") is False

        await cache.set("key1", "value1")
        assert await cache.exists("key1") is True

        assert await cache.expire("key1") is True
        assert await cache.exists("key1") is False
        assert await cache.expire("key1") is True

    async def test_read_lifetime(self, cache: SqlCacheBackend, clock: Any) -> None:
        await cache.set("key1", "value1", lifetime=3600)

        clock.advance(30)

        assert (await cache.get("key1", 60)).found is True
        assert (await cache.get("key1", 10)).found is False
        assert await cache.exists("key1", 10) is False
        assert await cache.exists("key1", 60) is True

    async def test_unspecified_lifetime_uses_default(self, cache: SqlCacheBackend, clock: Any) -> None:
        await cache.set("key1", "value1")

        clock.advance(3599)
        assert (await cache.get("key1", None)).value == "value1"

        clock.advance(2)
        assert (await cache.get("key1", None)).found is False

    async def test_zero_lifetime_never_expires(self, cache: SqlCacheBackend, clock: Any) -> None:
        await cache.set("key1", "value1", lifetime=0)

        clock.advance(10 * 365 * 86400)

        assert (await cache.get("key1", 1)).value == "value1"
        assert await cache.gc() == 0
        assert await cache.exists("key1", 1) is True

    async def test_gc_removes_expired_rows(self, cache: SqlCacheBackend, clock: Any) -> None:
        await cache.set("short", "a", lifetime=10)
        await cache.set("long", "b", lifetime=1000)
        await cache.set("forever", "c", lifetime=0)

        clock.advance(100)

        assert await cache.gc() == 1
        assert await cache.exists("long", 0) is True
        assert await cache.exists("forever", 0) is True

    async def test_namespace_isolation(self, tmp_path: Path) -> None:
        url = sqlite_url(tmp_path / "shared.db")
        first = SqlCacheBackend(url=url, namespace="ns1")
        second = SqlCacheBackend(url=url, namespace="ns2")
        try:
            await first.set("key", "one")
            await second.set("key", "two")

            assert (await first.get("key")).value == "one"
            assert (await second.get("key")).value == "two"

            await first.expire("key")
            assert (await second.get("key")).value == "two"
        finally:
            await first.close()
            await second.close()

    async def test_empty_key(self, cache: SqlCacheBackend) -> None:
        assert (await cache.get("")).found is False
        assert await cache.set("", "value") is False
        assert await cache.exists("") is False
        assert await cache.expire("") is False

    async def test_concurrent_writes_to_one_key(self, cache: SqlCacheBackend) -> None:
        results = await asyncio.gather(*(cache.set("same", i) for i in range(10)))

        assert results == [True] * 10
        assert (await cache.get("same")).value in range(10)
        assert (await cache.get_stats())["sets"] == 10

    async def test_overwrite_replaces_lifetime(self, cache: SqlCacheBackend, clock: Any) -> None:
        await cache.set("key1", "short", lifetime=10)
        await cache.set("key1", "forever", lifetime=0)

        clock.advance(100)

        assert (await cache.get("key1", 0)).value == "forever"
        assert await cache.gc() == 0
