"""
TaskBoard Backend - Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, declarative Base and the
       per-request session dependency.
How:   One engine with a connection pool is created at import. Each request
       gets its own AsyncSession that commits on success and rolls back on
       error.
Who:   Repositories receive the session through FastAPI's Depends().

Connection Pooling:
    pool_size=20, max_overflow=10 → at most 30 connections per worker.
    pool_pre_ping validates a pooled connection before handing it out.
    pool_recycle=3600 drops connections older than an hour.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from taskboard.config import settings

logger = logging.getLogger(__name__)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: records built from ORM rows after commit must not
# trigger lazy loads outside the session
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for --autogenerate.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    1. Creates a new session from the factory
    2. Yields it to the repository / route
    3. On success: commits the transaction
    4. On error: rolls back, then re-raises for the global handlers
    5. Always: closes the session (returns the connection to the pool)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
@retry(
    retry=retry_if_exception_type((DBAPIError, OSError)),
    stop=stop_after_attempt(settings.startup_retry_attempts),
    wait=wait_exponential_jitter(
        initial=settings.startup_retry_min_wait,
        max=settings.startup_retry_max_wait,
        jitter=1,
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def ping_database() -> None:
    """
    Run SELECT 1, retrying with exponential backoff while Postgres starts.

    Called from the lifespan handler. After the last attempt the last
    driver exception is re-raised.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Postgres connection verified")


async def dispose_engine() -> None:
    """Close all pooled connections. Called on application shutdown."""
    await engine.dispose()
