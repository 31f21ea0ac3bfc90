"""Database session management."""

from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taskme.config import get_settings

settings = get_settings()


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, applying pool settings where the dialect has a pool."""
    options: dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the settings every code path relies on."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Create async engine
engine = create_engine_from_url(settings.database_url, echo=settings.debug)

# Create session factory
async_session_factory = create_session_factory(engine)


async def init_db() -> None:
    """Initialize database connection pool."""
    # The engine is created on module import, but we can verify connectivity here
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db() -> None:
    """Close database connection pool."""
    await engine.dispose()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for long-lived consumers (live queries, websockets)."""
    return async_session_factory


# Type alias for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db_session)]

