"""
Engine, session factory and the session dependencies.

Read endpoints share one request-scoped session. Mutating endpoints get the
factory instead, because reservation operations open a fresh session per
attempt and may retry after a serialization conflict.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from binderkeep.config import settings
from binderkeep.models.db import Base


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # Local runs against a file; aiosqlite has no server-side pool to ping
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def serialize_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the database write lock at BEGIN.

    SQLite ignores FOR UPDATE, so two transactions could otherwise both read
    a row's availability before either writes. With BEGIN IMMEDIATE the
    second one waits (up to the driver's busy timeout) until the first ends.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _driver_autocommit(dbapi_connection, _connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of the driver
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)
if settings.database_url.startswith("sqlite") and ":memory:" not in settings.database_url:
    serialize_sqlite_transactions(engine)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for read-only endpoints and the readiness probe."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to ReservationService and CatalogService."""
    return async_session_factory


async def init_db() -> None:
    """Create missing tables. Called once at application startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Release pooled connections at shutdown."""
    await engine.dispose()
