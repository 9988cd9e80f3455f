"""Endpoints for the sync audit log and data integrity."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync import schemas
from catalogsync.api import deps
from catalogsync.core.exceptions import NotFoundException
from catalogsync.core.sync_audit_service import sync_audit_service

router = APIRouter()


@router.get("/", response_model=List[schemas.SyncLog])
async def list_sync_logs(
    limit: int = Query(50, ge=1, le=500),
    type_prefix: Optional[str] = Query(
        None, description="Only runs whose sync type starts with this, e.g. 'ASBIS'"
    ),
    db: AsyncSession = Depends(deps.get_db),
) -> List[schemas.SyncLog]:
    """List the most recent sync runs, newest first."""
    return await sync_audit_service.recent_runs(db, limit=limit, type_prefix=type_prefix)


@router.get("/latest", response_model=List[schemas.SyncLog])
async def latest_per_type(db: AsyncSession = Depends(deps.get_db)) -> List[schemas.SyncLog]:
    """Newest run of every sync type."""
    return await sync_audit_service.last_run_per_type(db)


@router.get("/latest/{sync_type}", response_model=schemas.SyncLog)
async def latest_of_type(
    sync_type: str, db: AsyncSession = Depends(deps.get_db)
) -> schemas.SyncLog:
    """Newest run of one sync type, e.g. ``VALI_PRODUCTS``."""
    try:
        return await sync_audit_service.last_run(db, sync_type)
    except NotFoundException as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/integrity-check", response_model=schemas.IntegrityReport)
async def integrity_check(
    platform: Optional[str] = Query(None, description="Restrict the check to one platform"),
    db: AsyncSession = Depends(deps.get_db),
) -> schemas.IntegrityReport:
    """Count products with a missing category, manufacturer or price."""
    if platform is not None:
        platform = deps.get_platform(platform).value
    return await sync_audit_service.integrity_check(db, platform=platform)
