"""Endpoints that trigger catalog syncs.

Every trigger runs synchronously and returns the outcome of the run. Runs of the same
platform are serialised: a trigger while another run of that platform is active is
rejected with 409.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException

from catalogsync import schemas
from catalogsync.api import deps
from catalogsync.core.exceptions import (
    NotFoundException,
    PlatformDisabledException,
    SyncAlreadyRunningException,
)
from catalogsync.core.logging import logger
from catalogsync.core.shared_models import EntityKind, Platform
from catalogsync.platform.sync.catalog_sync import CatalogSync
from catalogsync.platform.sync.factory import CatalogSyncFactory

router = APIRouter()


@asynccontextmanager
async def _run_guarded(
    factory: CatalogSyncFactory, platform: Platform
) -> AsyncIterator[CatalogSync]:
    """Hold the platform lock and translate failures into HTTP errors."""
    try:
        async with factory.exclusive(platform) as runner:
            yield runner
    except HTTPException:
        raise
    except NotFoundException as e:
        raise HTTPException(status_code=404, detail=e.message)
    except (PlatformDisabledException, SyncAlreadyRunningException) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"[API] Sync of {platform.value} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or type(e).__name__)


def _stage(runner: CatalogSync, kind: EntityKind):
    return {
        EntityKind.CATEGORIES: runner.sync_categories,
        EntityKind.MANUFACTURERS: runner.sync_manufacturers,
        EntityKind.PARAMETERS: runner.sync_parameters,
        EntityKind.PRODUCTS: runner.sync_products,
        EntityKind.DOCUMENTS: runner.sync_documents,
    }[kind]


@router.post("/{platform}/full", response_model=schemas.FullSyncResult)
async def sync_full(
    platform: Platform = Depends(deps.get_platform),
    factory: CatalogSyncFactory = Depends(deps.get_sync_factory),
) -> schemas.FullSyncResult:
    """Run every stage of a platform in dependency order.

    A failed stage is reported in the result and the remaining stages still run.
    """
    async with _run_guarded(factory, platform) as runner:
        return await runner.sync_full()


@router.post(
    "/{platform}/categories/{category_id}/products", response_model=schemas.SyncRunResult
)
async def sync_category_products(
    category_id: int,
    platform: Platform = Depends(deps.get_platform),
    factory: CatalogSyncFactory = Depends(deps.get_sync_factory),
) -> schemas.SyncRunResult:
    """Resync the products of one category, by internal category id."""
    async with _run_guarded(factory, platform) as runner:
        return await runner.sync_products_for_category(category_id)


@router.post(
    "/{platform}/products/{product_id}/documents", response_model=schemas.SyncRunResult
)
async def sync_product_documents(
    product_id: int,
    platform: Platform = Depends(deps.get_platform),
    factory: CatalogSyncFactory = Depends(deps.get_sync_factory),
) -> schemas.SyncRunResult:
    """Resync the documents of one product, by internal product id."""
    async with _run_guarded(factory, platform) as runner:
        return await runner.sync_documents_for_product(product_id)


@router.get("/{platform}/test-connection", response_model=schemas.ConnectionTestResult)
async def check_connection(
    platform: Platform = Depends(deps.get_platform),
    factory: CatalogSyncFactory = Depends(deps.get_sync_factory),
) -> schemas.ConnectionTestResult:
    """Check that the vendor API of a platform answers."""
    try:
        source = factory.get_source(platform)
    except PlatformDisabledException as e:
        raise HTTPException(status_code=409, detail=str(e))
    connected, message = await source.test_connection()
    return schemas.ConnectionTestResult(
        platform=platform.value, connected=connected, message=message
    )


@router.post("/{platform}/clear-cache", response_model=schemas.CacheClearResult)
async def clear_cache(
    platform: Platform = Depends(deps.get_platform),
    factory: CatalogSyncFactory = Depends(deps.get_sync_factory),
) -> schemas.CacheClearResult:
    """Drop the cached vendor responses of a platform."""
    try:
        source = factory.get_source(platform)
    except PlatformDisabledException as e:
        raise HTTPException(status_code=409, detail=str(e))
    source.invalidate_cache()
    return schemas.CacheClearResult(platform=platform.value, message="Cache cleared")


@router.post("/{platform}/{kind}", response_model=schemas.SyncRunResult)
async def sync_stage(
    kind: EntityKind,
    platform: Platform = Depends(deps.get_platform),
    factory: CatalogSyncFactory = Depends(deps.get_sync_factory),
) -> schemas.SyncRunResult:
    """Run one stage (categories, manufacturers, parameters, products or documents)."""
    async with _run_guarded(factory, platform) as runner:
        return await _stage(runner, kind)()
