"""Async database configuration.

Provides:
- Async SQLAlchemy engine and session factory
- Transaction-scoped advisory locks for serial allocation on PostgreSQL
"""

import zlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from qrvault.config import settings
from qrvault.infra.logging import get_logger

logger = get_logger(__name__)

# Global engine (initialized on app startup)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine

    if _engine is None:
        logger.info(
            "Creating database engine",
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_pool_max_overflow,
        )

        options: dict = {"echo": settings.debug}
        if settings.database_url.startswith("postgresql"):
            options.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_pool_max_overflow,
                pool_pre_ping=True,  # Verify connections before use
                pool_recycle=1800,  # Recycle connections after 30 min
            )

        _engine = create_async_engine(settings.database_url, **options)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session that commits on success.

    Yields:
        AsyncSession

    Example:
        async with get_db_session() as session:
            result = await session.execute(select(Product))
    """
    factory = get_session_factory()
    session = factory()

    try:
        yield session
        await session.commit()

    except Exception as e:
        await session.rollback()
        logger.error("Database session error", error=str(e))
        raise

    finally:
        await session.close()


def advisory_lock_key(name: str) -> int:
    """Stable signed 32-bit key for pg_advisory_xact_lock."""
    value = zlib.crc32(name.encode("utf-8"))
    return value - (1 << 32) if value >= (1 << 31) else value


async def acquire_advisory_lock(session: AsyncSession, name: str) -> bool:
    """Take a transaction-scoped advisory lock on PostgreSQL.

    Other dialects have no equivalent; the caller relies on the unique
    constraint there. Returns whether a lock was taken.
    """
    if session.bind is None or session.bind.dialect.name != "postgresql":
        return False
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": advisory_lock_key(name)},
    )
    logger.debug("Advisory lock acquired", lock=name)
    return True


async def close_db_engine() -> None:
    """Close the database engine and all connections.

    Call this during application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.info("Closing database engine")
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def verify_db_connection() -> bool:
    """Verify database connectivity.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
    except Exception as e:
        logger.error("Database connection failed", error=str(e))
        return False


async def init_models() -> None:
    """Create tables that do not exist yet (local development only)."""
    from qrvault.models import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
