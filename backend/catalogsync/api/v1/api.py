"""API routes for the catalog sync service."""

from fastapi import APIRouter

from catalogsync.api.v1.endpoints import sync, sync_logs

api_router = APIRouter()
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(sync_logs.router, prefix="/sync-logs", tags=["sync-logs"])
