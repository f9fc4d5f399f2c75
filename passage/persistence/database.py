"""PostgreSQL engine and session scopes for the profile directory."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from passage.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine from `settings.database`."""
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Read-only session scope."""
    async with session_factory() as session:
        yield session


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Session scope that commits on exit and rolls back if the body raises.

    Each write gets its own transaction, so a lost uniqueness race surfaces
    at the statement that lost it.
    """
    async with session_factory() as session:
        async with session.begin():
            yield session
