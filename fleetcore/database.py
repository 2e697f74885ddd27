"""
Database session management.

Provides the async SQLAlchemy engine, session factory, FastAPI dependency
and the transaction scope every mutation runs in.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from fleetcore.config.settings import get_settings
from fleetcore.context import ActorContext, set_actor
from fleetcore.models import Base


def normalize_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// if needed."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _configure_sqlite(engine: AsyncEngine) -> None:
    """
    Take over BEGIN from the sqlite driver.

    The driver defers BEGIN until the first write and does not support
    SAVEPOINT reliably. Emitting BEGIN IMMEDIATE ourselves makes SQLite
    serialize writers for the whole transaction and makes begin_nested()
    work for the audit writer.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False, pooled: bool = True) -> AsyncEngine:
    """Create an async engine for the given URL."""
    url = normalize_database_url(url)
    kwargs = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_pre_ping"] = True
        if not pooled:
            kwargs["poolclass"] = NullPool

    engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        _configure_sqlite(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory with the settings every caller expects."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,
    )


settings = get_settings()

engine = build_engine(settings.database_url, echo=settings.sql_echo)
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transaction(
    session: AsyncSession, actor: Optional[ActorContext] = None
) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block as one atomic mutation.

    Commits when the block completes, rolls back everything (including
    hook side effects) when it raises.

    Args:
        session: Database session
        actor: Acting identity, exposed to hooks through session.info
    """
    if actor is not None:
        set_actor(session, actor)
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def init_db(target: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database schema.

    Creates all tables defined in SQLAlchemy models.
    Should only be used in development/testing.
    In production, use Alembic migrations instead.
    """
    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(target: Optional[AsyncEngine] = None) -> None:
    """
    Drop all database tables.

    WARNING: This will delete all data!
    """
    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db() -> None:
    """Close database engine and clean up connections."""
    await engine.dispose()
