"""
Database configuration.
Implements connection pooling, async sessions and table initialization.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import PendingRollbackError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlmodel import SQLModel

from .config import settings

logger = logging.getLogger(__name__)

# Create async engine with pool settings
engine = create_async_engine(
    str(settings.database.url),
    echo=bool(
        settings.database.echo or settings.performance.enable_query_logging
    ),
    future=True,
    pool_pre_ping=True,
    pool_size=settings.database.pool_size,
    max_overflow=settings.database.max_overflow,
    pool_timeout=settings.database.pool_timeout,
    pool_recycle=settings.database.pool_recycle,
    poolclass=AsyncAdaptedQueuePool,
    connect_args={
        "server_settings": {
            "application_name": settings.api.app_name,
        },
        "command_timeout": 60,
        "timeout": 30,
    },
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Prevent additional queries after commit
    autoflush=False,  # Manual flush for better control
    autocommit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Engine operations commit their own transactions; this only commits
    whatever a caller left open and rolls back on errors.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Only commit if session is in a valid state
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    # Transaction already invalid - rollback instead
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_background_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an isolated session for scheduler jobs.

    Example:
        async with get_background_session() as db:
            await PoolLifecycleService.refresh_pool_status(db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> bool:
    """Run a trivial query to check connectivity."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def init_db() -> None:
    """
    Initialize database tables.
    Should be called on application startup. Safe to run repeatedly:
    create_all skips tables that already exist.
    """
    # Import models so every table is registered on the metadata
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables verified")


async def close_db() -> None:
    """
    Close database connections.
    Should be called on application shutdown.
    """
    await engine.dispose()
