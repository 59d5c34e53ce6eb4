"""
Lazily created async engine and session factory.

Nothing connects at import time, so the crawler and its tests run without a
database; the first store call that needs one creates the pool.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from opportunity_crawler.core.config import get_settings
from opportunity_crawler.core.exceptions import DatabaseNotConfiguredException
from opportunity_crawler.core.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Return the process-wide engine, creating it on first use.

    Raises:
        DatabaseNotConfiguredException: DATABASE_URL is not set
    """
    global _engine

    if _engine is None:
        settings = get_settings()
        if settings.database_url is None:
            raise DatabaseNotConfiguredException()

        _engine = create_async_engine(
            str(settings.database_url),
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
            # Cron runs are minutes apart; stale connections are recycled
            pool_recycle=300,
            echo=settings.database_echo,
            connect_args={"server_settings": {"application_name": settings.app_name}},
        )
        logger.info("Database engine created", pool_size=settings.database_pool_size)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def check_database() -> None:
    """Round-trip a trivial query; raises whatever the driver raises."""
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db() -> None:
    """Dispose of the pool; the next get_engine() call builds a new one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine closed")
