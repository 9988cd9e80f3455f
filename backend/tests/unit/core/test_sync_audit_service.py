"""Tests for the sync audit query service."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from catalogsync.core.exceptions import NotFoundException
from catalogsync.core.sync_audit_service import INTEGRITY_ISSUES, INTEGRITY_OK, SyncAuditService
from catalogsync.models import Category, Manufacturer, Product, SyncLog

T0 = datetime(2025, 3, 1, 3, 0, 0)


@pytest.fixture
def service():
    """Audit service under test."""
    return SyncAuditService()


async def _seed_logs(db):
    for minutes, sync_type in enumerate(
        ["VALI_CATEGORIES", "VALI_PRODUCTS", "ASBIS_CATEGORIES", "VALI_PRODUCTS"]
    ):
        created_at = T0 + timedelta(minutes=minutes)
        db.add(SyncLog(sync_type=sync_type, status="SUCCESS", created_at=created_at))
    await db.flush()


@pytest.mark.asyncio
async def test_recent_runs_newest_first_with_prefix(service, session_factory):
    """Test ordering, limit and type prefix filtering."""
    async with session_factory() as db:
        await _seed_logs(db)

        everything = await service.recent_runs(db, limit=10)
        vali = await service.recent_runs(db, limit=10, type_prefix="vali")
        limited = await service.recent_runs(db, limit=2)

    assert [r.sync_type for r in everything] == [
        "VALI_PRODUCTS",
        "ASBIS_CATEGORIES",
        "VALI_PRODUCTS",
        "VALI_CATEGORIES",
    ]
    assert all(r.sync_type.startswith("VALI") for r in vali)
    assert len(vali) == 3
    assert len(limited) == 2


@pytest.mark.asyncio
async def test_last_run_per_type(service, session_factory):
    """Test that only the newest run of each type is returned."""
    async with session_factory() as db:
        await _seed_logs(db)

        latest = await service.last_run_per_type(db)

    assert [r.sync_type for r in latest] == [
        "ASBIS_CATEGORIES",
        "VALI_CATEGORIES",
        "VALI_PRODUCTS",
    ]
    assert latest[2].created_at == T0 + timedelta(minutes=3)


@pytest.mark.asyncio
async def test_last_run_of_type(service, session_factory):
    """Test lookup by type, case-insensitively, and the not-found case."""
    async with session_factory() as db:
        await _seed_logs(db)

        run = await service.last_run(db, "vali_products")
        with pytest.raises(NotFoundException):
            await service.last_run(db, "TEKRA_PRODUCTS")

    assert run.sync_type == "VALI_PRODUCTS"
    assert run.created_at == T0 + timedelta(minutes=3)


@pytest.mark.asyncio
async def test_integrity_check_counts_incomplete_products(service, session_factory):
    """Test the integrity counters and status."""
    async with session_factory() as db:
        category = Category(platform="vali", external_id="1", name_en="Laptops", slug="laptops")
        manufacturer = Manufacturer(platform="vali", external_id="7", name="Lenovo")
        db.add_all([category, manufacturer])
        await db.flush()
        db.add_all(
            [
                Product(
                    platform="vali",
                    external_id="P1",
                    slug="p1",
                    category_id=category.id,
                    manufacturer_id=manufacturer.id,
                    price_client=Decimal("100.00"),
                ),
                Product(platform="vali", external_id="P2", slug="p2", category_id=category.id),
                Product(
                    platform="asbis",
                    external_id="A1",
                    slug="a1",
                    category_id=category.id,
                    manufacturer_id=manufacturer.id,
                    price_client=Decimal("5.00"),
                ),
            ]
        )
        await db.flush()

        report = await service.integrity_check(db)
        asbis = await service.integrity_check(db, platform="asbis")

    assert report.total_products == 3
    assert report.products_without_category == 0
    assert report.products_without_manufacturer == 1
    assert report.products_without_price == 1
    assert report.status == INTEGRITY_ISSUES
    assert asbis.platform == "asbis"
    assert asbis.total_products == 1
    assert asbis.status == INTEGRITY_OK
