"""Application entrypoint.

Builds the FastAPI app and owns the background tasks: the stuck-run monitor and the
cron scheduler run for the lifetime of the process.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from catalogsync.api.v1.api import api_router
from catalogsync.core.config import settings
from catalogsync.core.logging import logger
from catalogsync.core.sync_monitor_service import sync_monitor_service
from catalogsync.core.sync_scheduler import SyncScheduler
from catalogsync.db.init_db import init_db
from catalogsync.platform.sync.factory import CatalogSyncFactory


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, wire the platform registry and start the background tasks."""
    await init_db()

    factory = CatalogSyncFactory()
    scheduler = SyncScheduler(factory)
    app.state.sync_factory = factory
    app.state.sync_scheduler = scheduler

    await sync_monitor_service.start()
    await scheduler.start()
    logger.info(f"[App] {settings.PROJECT_NAME} started")
    try:
        yield
    finally:
        await scheduler.stop()
        await sync_monitor_service.stop()
        logger.info(f"[App] {settings.PROJECT_NAME} stopped")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
app.include_router(api_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
