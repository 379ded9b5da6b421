"""Database connection and session management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal_auth.config import get_settings

settings = get_settings()


def _engine_options() -> dict[str, Any]:
    """Build engine options for the configured backend.

    SQLite (development and tests) uses its own pool classes which reject
    pool sizing arguments.
    """
    if settings.is_sqlite:
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        # Validate connections before checkout to detect stale connections
        "pool_pre_ping": True,
        # Recycle connections after 1 hour (important for cloud proxies)
        "pool_recycle": 3600,
    }


engine = create_async_engine(
    settings.async_database_url,
    # Security: Never echo SQL statements as they may contain token hashes
    echo=False,
    **_engine_options(),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
