from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from salon_booking.core.config import settings

logger = structlog.get_logger(__name__)


def build_engine(url: str, **overrides) -> AsyncEngine:
    """Async engine for ``url`` with pool settings suited to its backend."""
    if make_url(url).get_backend_name() == "sqlite":
        options = {"connect_args": {"check_same_thread": False}}
    else:
        options = {"pool_pre_ping": True, "pool_recycle": 300}
    options.update(overrides)
    return create_async_engine(url, echo=False, **options)


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


async def init_db():
    """Check the connection and create missing tables."""
    # Registers every model on Base.metadata
    from salon_booking import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database connection initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", exc_info=e)
        raise


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", exc_info=e)
            raise
        finally:
            await session.close()


@asynccontextmanager
async def worker_session() -> AsyncIterator[AsyncSession]:
    """Session on a throwaway engine for Celery tasks.

    Every task runs its own event loop via asyncio.run, and pooled
    connections cannot cross loops.
    """
    task_engine = build_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(
        task_engine, class_=AsyncSession, expire_on_commit=False
    )
    try:
        async with session_factory() as session:
            yield session
    finally:
        await task_engine.dispose()
