"""Async engine and transactional sessions for the mapping and status tables."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from riffsync.config import DatabaseSettings

logger = logging.getLogger(__name__)

# Seconds a SQLite connection waits on a held write lock before raising
SQLITE_BUSY_TIMEOUT = 30


def _engine_options(settings: DatabaseSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo, "pool_pre_ping": settings.pool_pre_ping}
    if settings.url.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT,
        }
        return options

    options.update(
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )
    return options


def _foreign_keys_on(dbapi_conn: Any, _record: Any) -> None:
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


class Database:
    """Owns the engine; repositories open one session_scope() per operation."""

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings
        self._engine = create_async_engine(settings.url, **_engine_options(settings))

        # Track mappings hang off album mappings with ON DELETE CASCADE.
        # SQLite ignores that unless foreign keys are switched on per connection.
        if settings.url.startswith("sqlite"):
            event.listen(self._engine.sync_engine, "connect", _foreign_keys_on)

        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Commit on a clean exit, roll back and re-raise otherwise."""
        session = self._sessions()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Create the schema directly (tests and first start without Alembic)."""
        from riffsync.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Database schema ensured at %s", self.settings.url)

    async def close(self) -> None:
        await self._engine.dispose()
