"""
Rice Notes Backend — Database Engine Management
=================================================

What:  Async SQLAlchemy engine and session factory construction.
How:   create_engine_from_settings() builds a pooled async engine;
       create_session_factory() wraps it in an async_sessionmaker that the
       SQL repository uses for one short transaction per operation.
Who:   Called from the application lifespan (main.py) and by tests.

Connection Pooling:
    pool_size / max_overflow come from settings (defaults 20 + 10).
    pool_pre_ping validates pooled connections before use.
    pool_recycle=3600 recycles connections hourly.
    SQLite URLs (tests) skip the pool sizing arguments.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ricenotes.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shares one metadata object)."""
    pass


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for settings.database_url.

    Raises:
        ValueError: database_url is empty (the in-memory repository is used instead)
    """
    if not settings.database_url:
        raise ValueError("DATABASE_URL is not configured")

    kwargs = {
        "pool_pre_ping": settings.db_pool_pre_ping,
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
        )

    engine = create_async_engine(settings.database_url, **kwargs)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps loaded attributes readable after commit
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create every mapped table that does not exist yet."""
    # Import registers the Note model on Base.metadata
    from ricenotes.models.note import Note  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close all pooled connections (application shutdown)."""
    await engine.dispose()
