import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from puzzle_tracker.config import settings
from puzzle_tracker.models import Base

logger = logging.getLogger("puzzle_tracker.database")


def build_engine(database_url: str = settings.database_url) -> AsyncEngine:
    """Create the async engine; SQLite gets no connection pool options."""
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, echo=settings.database_echo)
    return create_async_engine(
        database_url,
        echo=settings.database_echo,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=30,
        pool_recycle=settings.database_pool_recycle,
        pool_pre_ping=settings.database_pool_pre_ping,
    )


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine()
async_session_maker = build_session_maker(engine)


async def init_db() -> None:
    """Initialize database (creates tables when DATABASE_AUTO_CREATE is on)."""
    total_attempts = settings.database_init_retries + 1
    for attempt in range(1, total_attempts + 1):
        try:
            async with engine.begin() as conn:
                if settings.database_auto_create:
                    await conn.run_sync(Base.metadata.create_all)
                else:
                    logger.info("Skipping create_all; schema is managed externally.")
            if attempt > 1:
                logger.info("Database initialized after %d attempts", attempt)
            return
        except Exception as exc:
            is_last_attempt = attempt >= total_attempts
            if is_last_attempt:
                logger.exception(
                    "Database initialization failed after %d attempts", attempt
                )
                raise
            delay_seconds = min(
                settings.database_init_retry_delay_seconds * attempt,
                10.0,
            )
            logger.warning(
                "Database initialization attempt %d/%d failed (%s). Retrying in %.1fs.",
                attempt,
                total_attempts,
                exc.__class__.__name__,
                delay_seconds,
            )
            await asyncio.sleep(delay_seconds)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
