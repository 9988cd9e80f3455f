"""Dependencies that are used in the API endpoints."""

from typing import AsyncGenerator

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.core.exceptions import NotFoundException
from catalogsync.core.shared_models import Platform
from catalogsync.db.session import get_db as _get_db
from catalogsync.platform.sync.factory import CatalogSyncFactory, parse_platform


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request."""
    async for db in _get_db():
        yield db


def get_sync_factory(request: Request) -> CatalogSyncFactory:
    """Get the platform registry built at application startup."""
    factory = getattr(request.app.state, "sync_factory", None)
    if factory is None:
        raise HTTPException(status_code=503, detail="Sync services are not initialised")
    return factory


def get_platform(platform: str) -> Platform:
    """Resolve the ``{platform}`` path parameter.

    Raises:
        HTTPException: 404 for an unknown platform
    """
    try:
        return parse_platform(platform)
    except NotFoundException as e:
        raise HTTPException(status_code=404, detail=e.message)
