"""Async database connection using SQLAlchemy (supports SQLite and PostgreSQL)."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import InterfaceError, InvalidRequestError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from scoreline.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def normalize_database_url(url: str) -> str:
    """Convert database URL to async format."""
    # SQLite
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def engine_options(url: str) -> dict:
    """Engine keyword arguments for the given (already normalized) URL."""
    kwargs: dict = {"echo": settings.SQL_ECHO}

    if url.startswith("sqlite"):
        # SQLite-specific settings
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = StaticPool
    else:
        # PostgreSQL-specific settings
        kwargs["pool_pre_ping"] = True  # Verify connection before checkout
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10
        kwargs["pool_recycle"] = 300
        kwargs["pool_timeout"] = 30
        kwargs["pool_reset_on_return"] = "rollback"
        # Statement timeout: a runaway sync must not hold a connection forever
        kwargs["connect_args"] = {
            "server_settings": {"statement_timeout": "60000"}
        }
    return kwargs


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

async_engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    # Ensure models are imported so metadata is fully populated
    from scoreline import models  # noqa: F401

    logger.info("Initializing database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully.")


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections...")
    await async_engine.dispose()
    logger.info("Database connections closed.")


@asynccontextmanager
async def get_session_with_retry(max_retries: int = 3, retry_delay: float = 1.0):
    """
    Context manager that provides a session with automatic retry on connection errors.

    Used by scheduled jobs that may encounter stale pooled connections.

    Retries only happen on session CREATION failure. If a connection drops
    DURING execution, the exception propagates to the caller.
    """
    last_error = None
    current_delay = retry_delay
    session = None

    for attempt in range(max_retries):
        try:
            session = AsyncSessionLocal()
            # Test the connection is alive before yielding
            await session.connection()
            break
        except (InterfaceError, OperationalError, InvalidRequestError) as e:
            last_error = e
            if session is not None:
                await session.close()
                session = None

            if attempt < max_retries - 1:
                logger.warning(
                    f"Database connection error (attempt {attempt + 1}/{max_retries}): {e}. "
                    f"Retrying in {current_delay}s..."
                )
                await asyncio.sleep(current_delay)
                current_delay *= 2
                continue
            raise

    if session is None:
        if last_error:
            raise last_error
        raise RuntimeError("Failed to create database session after retries")

    try:
        yield session
    finally:
        await session.close()
