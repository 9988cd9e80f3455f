"""Database session configuration."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from catalogsync.core.config import settings


def _engine_kwargs(uri: str) -> dict:
    # sqlite (used by tests and local runs) does not accept pool sizing arguments
    if uri.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


async_engine = create_async_engine(
    settings.SQLALCHEMY_ASYNC_DATABASE_URI,
    **_engine_kwargs(settings.SQLALCHEMY_ASYNC_DATABASE_URI),
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for a request.

    Yields:
        AsyncSession: An async database session
    """
    async with AsyncSessionLocal() as db:
        yield db


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Open a database session outside of a request.

    Use this in background tasks and services:

        async with get_db_context() as db:
            ...

    Yields:
        AsyncSession: An async database session
    """
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception:
            await db.rollback()
            raise
