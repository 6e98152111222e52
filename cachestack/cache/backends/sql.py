"""
cachestack — SQL Cache Backend

SQLAlchemy async cache driver. Rows carry the write time and stored lifetime;
the database has no native expiry, so freshness is checked on every read and
expired rows are purged by gc().

Defaults to SQLite via aiosqlite for zero-ops deployment; any async
SQLAlchemy URL works.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Float, Index, Integer, String, Text, and_, delete, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..interface import CacheDriver, CacheLookup, is_fresh

logger = logging.getLogger(__name__)

DEFAULT_SQL_URL = "sqlite+aiosqlite:///./data/cache.db"


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for cache tables."""

    pass


class CacheEntryRecord(Base):
    """One cached value, keyed by (namespace, key)."""

    __tablename__ = "cache_entries"

    namespace: Mapped[str] = mapped_column(String(255), primary_key=True)
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)  # JSON string
    written_at: Mapped[float] = mapped_column(Float, nullable=False)
    lifetime: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_cache_entries_written_at", "written_at"),)


class SqlCacheBackend(CacheDriver):
    """
    SQL-backed cache driver.

    Provides:
    - Lazy schema creation on first use
    - Read-time lifetime checks (no native expiry)
    - gc() to delete rows past their stored lifetime
    """

    def __init__(
        self,
        url: str = DEFAULT_SQL_URL,
        namespace: str = "cachestack",
        default_lifetime: int | None = None,
        echo: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize SQL cache backend.

        Args:
            url: Async SQLAlchemy database URL
            namespace: Namespace stored alongside every key
            default_lifetime: Default lifetime in seconds (0 = no expiry)
            echo: Log emitted SQL
            clock: Time source used to stamp and check rows
        """
        super().__init__(default_lifetime)
        self.url = url
        self.namespace = namespace
        self._clock = clock

        db_url = make_url(url)
        self._sqlite_path: Path | None = None
        connect_args: dict[str, Any] = {}
        if db_url.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False
            if db_url.database and db_url.database != ":memory:":
                self._sqlite_path = Path(db_url.database).resolve()

        self.engine: AsyncEngine = create_async_engine(url, echo=echo, connect_args=connect_args)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._expires = 0

        self._initialized = False
        self._initialization_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """
        Create the cache table if it does not exist.

        Safe to call multiple times.
        """
        async with self._initialization_lock:
            if self._initialized:
                return

            if self._sqlite_path is not None:
                self._sqlite_path.parent.mkdir(parents=True, exist_ok=True)

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._initialized = True

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self._initialized:
            await self.initialize()

        async with self.session_factory() as session:
            yield session

    def _key_clause(self, key: str) -> Any:
        return and_(CacheEntryRecord.namespace == self.namespace, CacheEntryRecord.key == key)

    async def _upsert(self, session: AsyncSession, key: str, row: dict[str, Any]) -> None:
        """
        Insert or replace the row for key.

        SQLite, PostgreSQL and MySQL/MariaDB get their native upsert. Other
        dialects update first and insert under a savepoint, falling back to
        the update if another writer inserted in between.
        """
        values = {"namespace": self.namespace, "key": key, **row}
        dialect = self.engine.dialect.name

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(CacheEntryRecord).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[CacheEntryRecord.namespace, CacheEntryRecord.key],
                set_={name: stmt.excluded[name] for name in row},
            )
            await session.execute(stmt)
            return

        if dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(CacheEntryRecord).values(**values)
            await session.execute(stmt.on_duplicate_key_update(**{name: stmt.inserted[name] for name in row}))
            return

        replace = update(CacheEntryRecord).where(self._key_clause(key)).values(**row)
        result = await session.execute(replace)
        if result.rowcount:
            return

        try:
            async with session.begin_nested():
                session.add(CacheEntryRecord(**values))
        except IntegrityError:
            await session.execute(replace)

    async def get(self, key: str, lifetime: int | None = 1) -> CacheLookup:
        """Retrieve a value by key."""
        if not key:
            logger.warning("Attempted to get cache value with empty key")
            return CacheLookup.miss()

        try:
            async with self._session() as session:
                record = await session.get(CacheEntryRecord, (self.namespace, key))

            if record is None or not is_fresh(
                record.written_at, record.lifetime, self._get_lifetime(lifetime), self._clock()
            ):
                self._misses += 1
                return CacheLookup.miss()

            value = json.loads(record.data)
        except Exception as e:
            logger.error(
                f"Failed to get key '{key}' from SQL cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            self._misses += 1
            return CacheLookup.miss()

        self._hits += 1
        return CacheLookup.hit(value)

    async def set(self, key: str, data: Any, lifetime: int | None = None) -> bool:
        """Insert or replace a row."""
        if not key:
            logger.warning("Attempted to set cache value with empty key")
            return False

        try:
            payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            logger.error(
                f"Failed to serialize value for key '{key}': {e}",
                extra={"key": key, "value_type": type(data).__name__, "error": str(e)},
                exc_info=True,
            )
            return False

        row = {
            "data": payload,
            "written_at": self._clock(),
            "lifetime": max(0, self._get_lifetime(lifetime)),
        }

        try:
            async with self._session() as session:
                await self._upsert(session, key, row)
                await session.commit()
            self._sets += 1
            return True
        except Exception as e:
            logger.error(
                f"Failed to set key '{key}' in SQL cache: {e}",
                extra={"key": key, "namespace": self.namespace, "lifetime": lifetime, "error": str(e)},
                exc_info=True,
            )
            return False

    async def exists(self, key: str, lifetime: int | None = 1) -> bool:
        """Check for a fresh row without loading its data."""
        if not key:
            return False

        try:
            async with self._session() as session:
                result = await session.execute(
                    select(CacheEntryRecord.written_at, CacheEntryRecord.lifetime).where(self._key_clause(key))
                )
                row = result.first()
        except Exception as e:
            logger.error(
                f"Failed to check existence of key '{key}' in SQL cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

        if row is None:
            return False
        return is_fresh(row.written_at, row.lifetime, self._get_lifetime(lifetime), self._clock())

    async def expire(self, key: str) -> bool:
        """Delete the row for key. Absent keys count as success."""
        if not key:
            logger.warning("Attempted to expire cache value with empty key")
            return False

        try:
            async with self._session() as session:
                result = await session.execute(delete(CacheEntryRecord).where(self._key_clause(key)))
                await session.commit()
            self._expires += result.rowcount or 0
            return True
        except Exception as e:
            logger.error(
                f"Failed to expire key '{key}' in SQL cache: {e}",
                extra={"key": key, "namespace": self.namespace, "error": str(e)},
                exc_info=True,
            )
            return False

    async def gc(self) -> int:
        """
        Delete rows whose stored lifetime has elapsed.

        Returns:
            Number of rows removed
        """
        now = self._clock()
        async with self._session() as session:
            result = await session.execute(
                delete(CacheEntryRecord).where(
                    CacheEntryRecord.namespace == self.namespace,
                    CacheEntryRecord.lifetime > 0,
                    CacheEntryRecord.written_at + CacheEntryRecord.lifetime < now,
                )
            )
            await session.commit()

        removed = result.rowcount or 0
        logger.info(f"Garbage collected {removed} expired entries from namespace '{self.namespace}'")
        return removed

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._hits + self._misses
        return {
            "backend": "sql",
            "url": make_url(self.url).render_as_string(hide_password=True),
            "namespace": self.namespace,
            "default_lifetime": self.default_lifetime,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total_requests * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "expires": self._expires,
        }

    async def close(self) -> None:
        """Dispose of the engine's connections."""
        await self.engine.dispose()
        self._initialized = False
        logger.debug(f"SQL cache backend closed for namespace '{self.namespace}'")
