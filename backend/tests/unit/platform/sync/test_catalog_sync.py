"""Scenario tests for the per-platform stage runner.

A fake source serves in-memory records; everything below it (engine, mappers, sync log,
database) is real and runs against SQLite.
"""

from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from catalogsync import crud
from catalogsync.core.exceptions import NotFoundException
from catalogsync.core.shared_models import ErrorStatusPolicy, Platform, SyncStatus
from catalogsync.core.sync_log_service import SyncLogService
from catalogsync.models import (
    Category,
    Manufacturer,
    Parameter,
    ParameterOption,
    Product,
    ProductDocument,
    SyncLog,
)
from catalogsync.platform.entities import (
    CategoryRecord,
    DocumentRecord,
    ManufacturerRecord,
    OptionRecord,
    ParameterRecord,
    ParameterValueRecord,
    ProductRecord,
)
from catalogsync.platform.sources._base import BaseSource
from catalogsync.platform.sync.catalog_sync import CatalogSync
from catalogsync.platform.sync.config import ReconciliationConfig

LONG_OPTION = "Compatible with " + ", ".join(f"model {i:04d}" for i in range(160))


class FakeSource(BaseSource):
    """In-memory source; tests set the attributes it serves."""

    platform = Platform.VALI

    def __init__(self, excluded: Optional[set] = None):
        super().__init__("https://fake.test", 1.0, 1, logger=MagicMock())
        self.excluded = excluded or set()
        self.categories: List[CategoryRecord] = []
        self.manufacturers: List[ManufacturerRecord] = []
        self.parameters: Dict[str, List[ParameterRecord]] = {}
        self.products: Dict[str, List[ProductRecord]] = {}
        self.documents: List[DocumentRecord] = []
        self.invalidations = 0

    @property
    def excluded_category_ids(self):
        return set(self.excluded)

    async def fetch_categories(self):
        return list(self.categories)

    async def fetch_manufacturers(self):
        return list(self.manufacturers)

    async def fetch_parameters(self, category_external_id):
        return list(self.parameters.get(category_external_id, []))

    async def fetch_products(self, category_external_id):
        return list(self.products.get(category_external_id, []))

    async def fetch_documents(self, product_external_id=None):
        return [
            d
            for d in self.documents
            if product_external_id is None or d.product_external_id == product_external_id
        ]

    def invalidate_cache(self):
        self.invalidations += 1


class HierarchicalSource(FakeSource):
    """Source whose child slugs are prefixed with the parent slug."""

    platform = Platform.ASBIS
    HIERARCHICAL_SLUGS = True
    ROOT_SLUG_DISCRIMINATOR = "asbis"


def _vali_catalog(source: FakeSource) -> None:
    source.categories = [
        CategoryRecord(external_id="11", name_en="Gaming Laptops", parent_external_id="10"),
        CategoryRecord(external_id="10", name_en="Laptops", name_bg="Лаптопи"),
        CategoryRecord(external_id="99", name_en="Internal"),
    ]
    source.manufacturers = [ManufacturerRecord(external_id="7", name="Lenovo")]
    source.parameters = {
        "11": [
            ParameterRecord(
                external_id="1",
                category_external_id="11",
                name_en="RAM",
                options=[
                    OptionRecord(external_id="100", name_en="16GB"),
                    OptionRecord(external_id="101", name_en="32GB"),
                    OptionRecord(external_id="102", name_en=LONG_OPTION),
                ],
            )
        ]
    }
    source.products = {
        "11": [
            ProductRecord(
                external_id="P1",
                category_external_id="11",
                manufacturer_external_id="999",
                reference_number="REF-1",
                name_en="Gamer X1",
                price_client=Decimal("100.00"),
                status_code="1",
                images=["https://img/1.jpg", "https://img/2.jpg"],
                parameters=[
                    ParameterValueRecord(parameter_external_id="1", option_external_id="101"),
                    ParameterValueRecord(parameter_external_id="9", option_external_id="900"),
                ],
            ),
            ProductRecord(
                external_id="P2",
                category_external_id="11",
                manufacturer_external_id="7",
                name_en="Gamer X2",
            ),
        ]
    }
    source.documents = [
        DocumentRecord(product_external_id="P1", document_url="https://docs/p1.pdf"),
        DocumentRecord(product_external_id="GHOST", document_url="https://docs/ghost.pdf"),
    ]


@pytest.fixture
def source():
    """Vali-like fake source with category 99 excluded."""
    fake = FakeSource(excluded={"99"})
    _vali_catalog(fake)
    return fake


@pytest.fixture
def runner_for(db_context, engine_config):
    """Build a ``CatalogSync`` bound to the test database."""

    def _build(source: BaseSource) -> CatalogSync:
        return CatalogSync(
            source,
            config=engine_config,
            db_context=db_context,
            sync_logs=SyncLogService(db_context=db_context),
        )

    return _build


async def _categories_by_external_id(session_factory, platform="vali") -> Dict[str, Category]:
    async with session_factory() as db:
        return await crud.category.get_platform_map(db, platform)


async def _count(session_factory, model) -> int:
    async with session_factory() as db:
        return await db.scalar(select(func.count(model.id)))


# =============================================================================
# Categories
# =============================================================================


@pytest.mark.asyncio
async def test_categories_are_created_with_hierarchy(source, runner_for, session_factory):
    """Test nodes, parent links and paths, with the excluded category skipped."""
    result = await runner_for(source).sync_categories()

    categories = await _categories_by_external_id(session_factory)
    assert set(categories) == {"10", "11"}
    laptops, gaming = categories["10"], categories["11"]
    assert laptops.slug == "laptops"
    assert gaming.slug == "gaming-laptops"
    assert gaming.parent_id == laptops.id
    assert laptops.parent_id is None
    assert gaming.category_path == "laptops/gaming-laptops"

    assert result.success
    assert result.sync_type == "VALI_CATEGORIES"
    assert result.created == 2
    assert result.skipped == 1
    assert "Skipped 1 excluded records" in result.message
    assert result.sync_log_id is not None


@pytest.mark.asyncio
async def test_hierarchical_slugs_and_paths(runner_for, session_factory):
    """Test that child slugs carry the parent slug and paths use own segments."""
    source = HierarchicalSource()
    source.categories = [
        CategoryRecord(
            external_id="Notebooks|Gaming", name_en="Gaming", parent_external_id="Notebooks"
        ),
        CategoryRecord(external_id="Notebooks", name_en="Notebooks"),
    ]

    await runner_for(source).sync_categories()

    categories = await _categories_by_external_id(session_factory, "asbis")
    assert categories["Notebooks"].slug == "notebooks"
    assert categories["Notebooks|Gaming"].slug == "notebooks-gaming"
    assert categories["Notebooks|Gaming"].category_path == "notebooks/gaming"


@pytest.mark.asyncio
async def test_root_slug_collision_uses_platform_discriminator(
    source, runner_for, session_factory
):
    """Test that a root colliding with another platform's slug gets the platform suffix."""
    await runner_for(source).sync_categories()
    asbis = HierarchicalSource()
    asbis.categories = [CategoryRecord(external_id="Laptops", name_en="Laptops")]

    await runner_for(asbis).sync_categories()

    categories = await _categories_by_external_id(session_factory, "asbis")
    assert categories["Laptops"].slug == "laptops-asbis"


@pytest.mark.asyncio
async def test_second_category_run_is_idempotent(source, runner_for, session_factory):
    """Test that an unchanged source creates nothing on the second run."""
    runner = runner_for(source)
    await runner.sync_categories()
    before = await _categories_by_external_id(session_factory)

    second = await runner.sync_categories()

    after = await _categories_by_external_id(session_factory)
    assert second.created == 0
    assert second.updated == 2
    assert {k: c.slug for k, c in after.items()} == {k: c.slug for k, c in before.items()}
    assert await _count(session_factory, Category) == 2


@pytest.mark.asyncio
async def test_empty_source_leaves_categories_untouched(source, runner_for, session_factory):
    """Test that an empty fetch is a zero run, not a deletion."""
    runner = runner_for(source)
    await runner.sync_categories()
    source.categories = []

    result = await runner.sync_categories()

    assert result.success
    assert result.processed == 0
    assert await _count(session_factory, Category) == 2


# =============================================================================
# Manufacturers and parameters
# =============================================================================


@pytest.mark.asyncio
async def test_manufacturers_are_reconciled(source, runner_for, session_factory):
    """Test manufacturer creation and update."""
    runner = runner_for(source)
    first = await runner.sync_manufacturers()
    source.manufacturers = [ManufacturerRecord(external_id="7", name="Lenovo Group")]
    second = await runner.sync_manufacturers()

    async with session_factory() as db:
        manufacturers = await crud.manufacturer.get_platform_map(db, "vali")

    assert first.created == 1
    assert second.updated == 1
    assert manufacturers["7"].name == "Lenovo Group"


class RawManufacturerSource(FakeSource):
    """Source that converts raw vendor items the way the real adapters do."""

    def __init__(self, raw: list):
        super().__init__()
        self.raw = raw

    async def fetch_manufacturers(self):
        return self._convert_each(
            "manufacturers",
            self.raw,
            lambda item: ManufacturerRecord(external_id=item["id"], name=item["name"]),
        )


@pytest.mark.asyncio
async def test_malformed_source_items_count_as_errors(runner_for, session_factory):
    """Test that one bad vendor item fails alone and is reported in the run."""
    source = RawManufacturerSource(
        [{"id": "7", "name": "Lenovo"}, {"name": "no id"}, {"id": "8", "name": "Dell"}]
    )

    result = await runner_for(source).sync_manufacturers()

    async with session_factory() as db:
        manufacturers = await crud.manufacturer.get_platform_map(db, "vali")
        log = (await db.execute(select(SyncLog))).scalar_one()

    assert set(manufacturers) == {"7", "8"}
    assert result.created == 2
    assert result.errors == 1
    assert result.success
    assert "Dropped 1 malformed source records" in result.message
    assert log.error_count == 1
    assert source.drain_malformed() == []


@pytest.mark.asyncio
async def test_parameters_and_long_options(source, runner_for, session_factory):
    """Test that parameters and options are written, including an 1800+ character option."""
    runner = runner_for(source)
    await runner.sync_categories()

    result = await runner.sync_parameters()

    async with session_factory() as db:
        options = (await db.execute(select(ParameterOption))).scalars().all()
        parameter = (await db.execute(select(Parameter))).scalar_one()

    categories = await _categories_by_external_id(session_factory)
    assert len(LONG_OPTION) > 1800
    assert parameter.category_id == categories["11"].id
    assert {o.name_en for o in options} == {"16GB", "32GB", LONG_OPTION}
    assert all(o.parameter_id == parameter.id for o in options)
    assert result.success
    assert result.created == 4
    assert "Options: 3 processed" in result.message


# =============================================================================
# Products
# =============================================================================


async def _prepare(runner: CatalogSync) -> None:
    await runner.sync_categories()
    await runner.sync_manufacturers()
    await runner.sync_parameters()


@pytest.mark.asyncio
async def test_products_with_unknown_manufacturer_are_written(
    source, runner_for, session_factory
):
    """Test that a missing manufacturer leaves the reference null without failing."""
    runner = runner_for(source)
    await _prepare(runner)

    result = await runner.sync_products()

    async with session_factory() as db:
        products = await crud.product.get_platform_map(db, "vali")
        pairs = await crud.product_parameter.get_pairs(db, products["P1"].id)
        manufacturers = await crud.manufacturer.get_platform_map(db, "vali")
    categories = await _categories_by_external_id(session_factory)

    p1, p2 = products["P1"], products["P2"]
    assert result.success
    assert result.created == 2
    assert result.errors == 0
    assert "1 products without a known manufacturer" in result.message
    assert "1 parameter values unmapped" in result.message

    assert p1.manufacturer_id is None
    assert p2.manufacturer_id == manufacturers["7"].id
    assert p1.category_id == categories["11"].id
    assert p1.slug == "gamer-x1"
    assert p1.status == "AVAILABLE"
    assert p1.final_price == Decimal("120.00")
    assert p1.primary_image_url == "https://img/1.jpg"
    assert p1.additional_images == ["https://img/2.jpg"]
    assert len(pairs) == 1


@pytest.mark.asyncio
async def test_second_product_run_creates_nothing(source, runner_for, session_factory):
    """Test product idempotence."""
    runner = runner_for(source)
    await _prepare(runner)
    await runner.sync_products()

    second = await runner.sync_products()

    assert second.created == 0
    assert second.updated == 2
    assert await _count(session_factory, Product) == 2


@pytest.mark.asyncio
async def test_products_for_one_category(source, runner_for, session_factory):
    """Test the single-category run and its not-found cases."""
    runner = runner_for(source)
    await _prepare(runner)
    categories = await _categories_by_external_id(session_factory)

    result = await runner.sync_products_for_category(categories["11"].id)

    assert result.created == 2
    with pytest.raises(NotFoundException):
        await runner.sync_products_for_category(123456)


@pytest.mark.asyncio
async def test_category_of_other_platform_is_not_found(source, runner_for, session_factory):
    """Test that a category id of another platform is rejected."""
    vali = runner_for(source)
    await vali.sync_categories()
    asbis = HierarchicalSource()
    asbis.categories = [CategoryRecord(external_id="Notebooks", name_en="Notebooks")]
    await runner_for(asbis).sync_categories()

    asbis_categories = await _categories_by_external_id(session_factory, "asbis")
    with pytest.raises(NotFoundException):
        await vali.sync_products_for_category(asbis_categories["Notebooks"].id)



# =============================================================================
# Documents
# =============================================================================


@pytest.mark.asyncio
async def test_documents_of_unknown_products_are_errors(source, runner_for, session_factory):
    """Test that a document for an unknown product fails only that record."""
    runner = runner_for(source)
    await _prepare(runner)
    await runner.sync_products()

    result = await runner.sync_documents()

    async with session_factory() as db:
        documents = (await db.execute(select(ProductDocument))).scalars().all()

    assert result.created == 1
    assert result.errors == 1
    assert result.success
    assert result.message.startswith("Completed with 1 errors")
    assert [d.document_url for d in documents] == ["https://docs/p1.pdf"]


@pytest.mark.asyncio
async def test_documents_for_one_product(source, runner_for, session_factory):
    """Test the single-product run."""
    runner = runner_for(source)
    await _prepare(runner)
    await runner.sync_products()
    async with session_factory() as db:
        products = await crud.product.get_platform_map(db, "vali")

    result = await runner.sync_documents_for_product(products["P1"].id)

    assert result.created == 1
    assert result.errors == 0
    with pytest.raises(NotFoundException):
        await runner.sync_documents_for_product(987654)


# =============================================================================
# Stage wrapper and full pipeline
# =============================================================================


@pytest.mark.asyncio
async def test_failing_stage_is_logged_and_reraised(source, runner_for, session_factory):
    """Test that an exception completes the log as FAILED and propagates."""
    source.fetch_manufacturers = AsyncMock(side_effect=RuntimeError("vendor exploded"))

    with pytest.raises(RuntimeError):
        await runner_for(source).sync_manufacturers()

    async with session_factory() as db:
        db_log = (await db.execute(select(SyncLog))).scalar_one()
    assert db_log.sync_type == "VALI_MANUFACTURERS"
    assert db_log.status == SyncStatus.FAILED.value
    assert db_log.error_message == "vendor exploded"
    assert db_log.completed_at is not None


@pytest.mark.asyncio
async def test_full_sync_continues_after_failed_stage(source, runner_for, session_factory):
    """Test that every stage runs and the failed one is reported."""
    source.fetch_manufacturers = AsyncMock(side_effect=RuntimeError("vendor exploded"))

    result = await runner_for(source).sync_full()

    assert source.invalidations == 1
    assert result.platform == "vali"
    assert not result.success
    assert [stage.sync_type for stage in result.stages] == [
        "VALI_CATEGORIES",
        "VALI_MANUFACTURERS",
        "VALI_PARAMETERS",
        "VALI_PRODUCTS",
        "VALI_DOCUMENTS",
    ]
    assert [stage.success for stage in result.stages] == [True, False, True, True, True]
    assert result.stages[1].message == "vendor exploded"
    assert await _count(session_factory, Product) == 2
    assert await _count(session_factory, Manufacturer) == 0


@pytest.mark.asyncio
async def test_strict_policy_marks_runs_with_errors_failed(source, db_context, session_factory):
    """Test the fail-on-errors status policy."""
    config = ReconciliationConfig(
        batch_pause_seconds=0, error_status_policy=ErrorStatusPolicy.FAIL_ON_ERRORS
    )
    runner = CatalogSync(
        source, config=config, db_context=db_context, sync_logs=SyncLogService(db_context)
    )
    await _prepare(runner)
    await runner.sync_products()

    result = await runner.sync_documents()

    async with session_factory() as db:
        db_log = await crud.sync_log.get_last_by_type(db, "VALI_DOCUMENTS")
    assert not result.success
    assert db_log.status == SyncStatus.FAILED.value
    assert db_log.records_created == 1
    assert db_log.error_count == 1
