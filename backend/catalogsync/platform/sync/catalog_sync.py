"""Stage runner for one platform.

``CatalogSync`` wires a source adapter to the generic engine, one stage per entity kind,
in dependency order: categories, manufacturers, parameters (with options), products,
documents. Every stage is wrapped in a sync log row and returns a ``SyncRunResult``.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync import crud, schemas
from catalogsync.core.exceptions import NotFoundException
from catalogsync.core.logging import ContextualLogger, LoggerConfigurator
from catalogsync.core.shared_models import EntityKind, SyncStatus, sync_type_for
from catalogsync.core.sync_log_service import SyncLogService, resolve_status, sync_log_service
from catalogsync.db.session import get_db_context
from catalogsync.models import Category, Manufacturer, Product
from catalogsync.platform.entities import CategoryRecord, DocumentRecord, ProductRecord
from catalogsync.platform.sources._base import BaseSource
from catalogsync.platform.sync import mappers
from catalogsync.platform.sync.category_hierarchy import (
    CategoryHierarchyResolver,
    order_parents_first,
)
from catalogsync.platform.sync.config import ReconciliationConfig
from catalogsync.platform.sync.context import ReconcileContext
from catalogsync.platform.sync.engine import ChunkedReconciliationEngine, ReconciliationSpec
from catalogsync.platform.sync.lookup_cache import EntityLookupCache
from catalogsync.platform.sync.parameter_graph import ParameterGraphResolver
from catalogsync.platform.sync.results import BatchOutcome, RecordResult, aggregate
from catalogsync.platform.sync.slug import SlugGenerator

# A stage body returns its counters and an optional note appended to the run message
StageWork = Callable[[ReconcileContext], Awaitable[Tuple[BatchOutcome, Optional[str]]]]

CATEGORY_SLUG_LENGTH = 200
PRODUCT_SLUG_LENGTH = 300


class CatalogSync:
    """Runs reconciliation stages for one source platform."""

    def __init__(
        self,
        source: BaseSource,
        config: Optional[ReconciliationConfig] = None,
        db_context: Optional[Callable] = None,
        sync_logs: Optional[SyncLogService] = None,
        engine: Optional[ChunkedReconciliationEngine] = None,
    ):
        """Wire the runner.

        Args:
            source: Vendor adapter
            config: Engine knobs; defaults to ``ReconciliationConfig.from_settings()``
            db_context: Session context factory; defaults to ``get_db_context``
            sync_logs: Audit recorder; defaults to the ``sync_log_service`` singleton
            engine: Reconciliation engine; a default one is created otherwise
        """
        self.source = source
        self.platform = source.platform
        self.config = config or ReconciliationConfig.from_settings()
        self._db_context = db_context
        self.sync_logs = sync_logs or sync_log_service
        self.engine = engine or ChunkedReconciliationEngine()
        self.category_slugs = SlugGenerator(self.config.slug_max_attempts, CATEGORY_SLUG_LENGTH)
        self.product_slugs = SlugGenerator(self.config.slug_max_attempts, PRODUCT_SLUG_LENGTH)

    def _session(self):
        return (self._db_context or get_db_context)()

    def _logger(self, sync_type: str) -> ContextualLogger:
        return LoggerConfigurator.configure_logger(
            "catalogsync.platform.sync",
            dimensions={"platform": self.platform.value, "sync_type": sync_type},
        )

    # =============================================================================
    # Stage wrapper
    # =============================================================================

    async def _run_stage(self, kind: EntityKind, work: StageWork) -> schemas.SyncRunResult:
        """Run ``work`` inside a sync log row and a fresh session.

        Failures of ``work`` complete the log as FAILED and are re-raised.
        """
        sync_type = sync_type_for(self.platform, kind)
        logger = self._logger(sync_type)
        handle = await self.sync_logs.create_run(sync_type)
        started = time.monotonic()
        self.source.drain_malformed()
        logger.info(f"{self.source.label} Starting {sync_type}")

        try:
            async with self._session() as db:
                ctx = ReconcileContext(db, self.source, self.config, sync_type, logger)
                outcome, note = await work(ctx)
        except Exception as e:
            self.source.drain_malformed()
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.error(f"[Sync] {sync_type} failed after {duration_ms}ms: {e}", exc_info=True)
            error = str(e) or type(e).__name__
            await self.sync_logs.complete_run(
                handle, SyncStatus.FAILED, error=error, duration_ms=duration_ms
            )
            raise

        outcome, note = self._with_malformed(outcome, note, logger)
        duration_ms = int((time.monotonic() - started) * 1000)
        status, message = resolve_status(outcome, self.config.error_status_policy)
        if note:
            message = f"{message}. {note}" if message else note
        await self.sync_logs.complete_run(handle, status, outcome, message, duration_ms)
        logger.info(f"[Sync] {sync_type} finished in {duration_ms}ms: {outcome.summary()}")

        return schemas.SyncRunResult(
            sync_type=sync_type,
            success=status == SyncStatus.SUCCESS,
            message=message or f"{sync_type} completed: {outcome.summary()}",
            duration_ms=duration_ms,
            processed=outcome.processed,
            created=outcome.created,
            updated=outcome.updated,
            skipped=outcome.skipped,
            errors=outcome.errors,
            deferred=outcome.deferred,
            sync_log_id=None if handle.degraded else handle.id,
        )

    def _with_malformed(
        self, outcome: BatchOutcome, note: Optional[str], logger: ContextualLogger
    ) -> Tuple[BatchOutcome, Optional[str]]:
        """Count the source items the adapter dropped during the stage as failed records."""
        malformed = self.source.drain_malformed()
        if not malformed:
            return outcome, note
        logger.warning(f"[Sync] Source returned {len(malformed)} malformed records")
        failed = aggregate(RecordResult.failed(key, error) for key, error in malformed)
        dropped = f"Dropped {len(malformed)} malformed source records"
        return outcome.merge(failed), f"{note}. {dropped}" if note else dropped

    async def _pause(self) -> None:
        if self.config.batch_pause_seconds > 0:
            await asyncio.sleep(self.config.batch_pause_seconds)

    async def _category_cache(self, db: AsyncSession) -> EntityLookupCache:
        return EntityLookupCache(await crud.category.get_platform_map(db, self.platform.value))

    def _syncable_categories(self, cache: EntityLookupCache) -> List[Category]:
        excluded = self.source.excluded_category_ids
        return sorted(
            (c for c in cache.values() if c.external_id not in excluded),
            key=lambda c: (c.sort_order, c.id),
        )

    # =============================================================================
    # Categories
    # =============================================================================

    async def sync_categories(self) -> schemas.SyncRunResult:
        """Reconcile category nodes, then link parents and materialise paths."""
        return await self._run_stage(EntityKind.CATEGORIES, self._categories_work)

    async def _categories_work(self, ctx: ReconcileContext) -> Tuple[BatchOutcome, Optional[str]]:
        records = order_parents_first(await self.source.fetch_categories())
        if not records:
            ctx.logger.info("[Categories] Source returned no categories")
            return BatchOutcome(), None

        # The slug of a child depends on its parent, which the mapper reads from the cache
        cache = await self._category_cache(ctx.db)

        async def preload(ctx: ReconcileContext, records) -> EntityLookupCache:
            return cache

        async def mapper(record: CategoryRecord, existing, ctx: ReconcileContext):
            return await mappers.map_category(record, existing, ctx, cache, self.category_slugs)

        spec = ReconciliationSpec(
            name="categories",
            fetch=self.source.fetch_categories,
            external_id=lambda r: r.external_id,
            mapper=mapper,
            preload=preload,
        )
        run = await self.engine.reconcile(spec, ctx, records)

        # Second pass: every node of the run exists now
        categories = list(run.cache.values())
        for category in categories:
            ctx.db.add(category)
        resolver = CategoryHierarchyResolver(ctx.logger)
        linkable = [r for r in records if r.external_id not in self.source.excluded_category_ids]
        hierarchy = resolver.link_parents(linkable, run.cache)
        await ctx.uow.flush()
        paths = resolver.assign_paths(categories)
        await ctx.uow.flush_and_release()
        await ctx.uow.commit()

        note = f"Hierarchy: {hierarchy.summary()}, {paths} paths updated"
        if run.outcome.skipped:
            note = f"Skipped {run.outcome.skipped} excluded records. {note}"
        return run.outcome, note

    # =============================================================================
    # Manufacturers
    # =============================================================================

    async def sync_manufacturers(self) -> schemas.SyncRunResult:
        """Reconcile manufacturers."""
        return await self._run_stage(EntityKind.MANUFACTURERS, self._manufacturers_work)

    async def _manufacturers_work(
        self, ctx: ReconcileContext
    ) -> Tuple[BatchOutcome, Optional[str]]:
        async def preload(ctx: ReconcileContext, records) -> EntityLookupCache:
            seen, duplicates = set(), set()
            for record in records:
                if record.external_id in seen:
                    duplicates.add(record.external_id)
                seen.add(record.external_id)
            if duplicates:
                ctx.logger.warning(
                    f"[Manufacturers] Source lists {len(duplicates)} manufacturer ids more than "
                    f"once: {sorted(duplicates)[:10]}"
                )
            return EntityLookupCache(
                await crud.manufacturer.get_platform_map(ctx.db, self.platform.value)
            )

        spec = ReconciliationSpec(
            name="manufacturers",
            fetch=self.source.fetch_manufacturers,
            external_id=lambda r: r.external_id,
            mapper=mappers.map_manufacturer,
            preload=preload,
        )
        run = await self.engine.run(spec, ctx)
        return run.outcome, None

    # =============================================================================
    # Parameters and options
    # =============================================================================

    async def sync_parameters(self) -> schemas.SyncRunResult:
        """Reconcile parameters and their options, category by category."""
        return await self._run_stage(EntityKind.PARAMETERS, self._parameters_work)

    async def _parameters_work(self, ctx: ReconcileContext) -> Tuple[BatchOutcome, Optional[str]]:
        categories = self._syncable_categories(await self._category_cache(ctx.db))
        parameters_total = BatchOutcome()
        options_total = BatchOutcome()

        for index, category in enumerate(categories):
            category_logger = ctx.logger.with_context(category_external_id=category.external_id)
            category_ctx = ReconcileContext(
                ctx.db, ctx.source, ctx.config, ctx.sync_type, category_logger
            )
            parameters, options = await self._parameters_of_category(category_ctx, category)
            parameters_total = parameters_total.merge(parameters)
            options_total = options_total.merge(options)
            if index < len(categories) - 1:
                await self._pause()

        note = f"Options: {options_total.summary()}"
        return parameters_total.merge(options_total), note

    async def _parameters_of_category(
        self, ctx: ReconcileContext, category: Category
    ) -> Tuple[BatchOutcome, BatchOutcome]:
        category_id = category.id

        async def preload_parameters(ctx: ReconcileContext, records) -> EntityLookupCache:
            return EntityLookupCache(
                await crud.parameter.get_map_for_categories(
                    ctx.db, self.platform.value, [category_id]
                )
            )

        async def map_parameter(record, existing, ctx: ReconcileContext):
            return await mappers.map_parameter(record, existing, ctx, category)

        parameter_spec = ReconciliationSpec(
            name="parameters",
            fetch=lambda: self.source.fetch_parameters(category.external_id),
            external_id=lambda r: (category_id, r.external_id),
            mapper=map_parameter,
            preload=preload_parameters,
        )
        run = await self.engine.run(parameter_spec, ctx)

        candidates = []
        for record in run.records:
            parameter = run.cache.get((category_id, record.external_id))
            if parameter is None:
                continue
            candidates.extend(
                mappers.OptionCandidate(parameter_id=parameter.id, record=option)
                for option in record.options
            )

        async def preload_options(ctx: ReconcileContext, items) -> EntityLookupCache:
            return EntityLookupCache(
                await crud.parameter_option.get_map_for_parameters(
                    ctx.db, {item.parameter_id for item in items}
                )
            )

        option_spec = ReconciliationSpec(
            name="options",
            fetch=None,
            external_id=lambda c: (c.parameter_id, c.record.external_id),
            mapper=mappers.map_option,
            preload=preload_options,
            batch_size=self.config.option_batch_size,
        )
        option_run = await self.engine.reconcile(option_spec, ctx, candidates)
        return run.outcome, option_run.outcome

    # =============================================================================
    # Products
    # =============================================================================

    async def sync_products(self) -> schemas.SyncRunResult:
        """Reconcile the products of every category of the platform."""
        return await self._run_stage(EntityKind.PRODUCTS, self._products_work)

    async def sync_products_for_category(self, category_id: int) -> schemas.SyncRunResult:
        """Reconcile the products of one category, by internal id.

        Raises:
            NotFoundException: No category of this platform has that id
        """
        async with self._session() as db:
            category = await crud.category.get(db, category_id)
        if category is None or category.platform != self.platform.value:
            raise NotFoundException(f"Category {category_id} not found for {self.platform.value}")

        async def work(ctx: ReconcileContext):
            return await self._products_work(ctx, only_category_id=category_id)

        return await self._run_stage(EntityKind.PRODUCTS, work)

    async def _products_work(
        self, ctx: ReconcileContext, only_category_id: Optional[int] = None
    ) -> Tuple[BatchOutcome, Optional[str]]:
        category_cache = await self._category_cache(ctx.db)
        categories = self._syncable_categories(category_cache)
        if only_category_id is not None:
            categories = [c for c in categories if c.id == only_category_id]

        manufacturers: Dict[str, Manufacturer] = await crud.manufacturer.get_platform_map(
            ctx.db, self.platform.value
        )
        state = mappers.ProductMappingState(
            categories=category_cache,
            manufacturers=manufacturers,
            resolver=ParameterGraphResolver(self.platform.value, ctx.logger),
            slugs=self.product_slugs,
        )

        total = BatchOutcome()
        for index, category in enumerate(categories):
            state.default_category = category
            category_logger = ctx.logger.with_context(category_external_id=category.external_id)
            category_ctx = ReconcileContext(
                ctx.db, ctx.source, ctx.config, ctx.sync_type, category_logger
            )
            total = total.merge(await self._products_of_category(category_ctx, category, state))
            if index < len(categories) - 1:
                await self._pause()

        notes = []
        if state.unmapped_parameters:
            notes.append(f"{state.unmapped_parameters} parameter values unmapped")
        if state.missing_manufacturers:
            notes.append(f"{state.missing_manufacturers} products without a known manufacturer")
        if state.missing_categories:
            notes.append(f"{state.missing_categories} products without a known category")
        return total, ", ".join(notes) or None

    async def _products_of_category(
        self, ctx: ReconcileContext, category: Category, state: mappers.ProductMappingState
    ) -> BatchOutcome:
        async def preload(ctx: ReconcileContext, records: List[ProductRecord]):
            return EntityLookupCache(
                await crud.product.find_by_external_ids(
                    ctx.db, self.platform.value, (r.external_id for r in records)
                )
            )

        async def mapper(record: ProductRecord, existing, ctx: ReconcileContext):
            return await mappers.map_product(record, existing, ctx, state)

        spec = ReconciliationSpec(
            name="products",
            fetch=lambda: self.source.fetch_products(category.external_id),
            external_id=lambda r: r.external_id,
            mapper=mapper,
            preload=preload,
        )
        run = await self.engine.run(spec, ctx)
        return run.outcome

    # =============================================================================
    # Documents
    # =============================================================================

    async def sync_documents(self) -> schemas.SyncRunResult:
        """Reconcile the documents of every product."""

        async def work(ctx: ReconcileContext):
            records = await self.source.fetch_documents()
            return await self._documents_work(ctx, records), None

        return await self._run_stage(EntityKind.DOCUMENTS, work)

    async def sync_documents_for_product(self, product_id: int) -> schemas.SyncRunResult:
        """Reconcile the documents of one product, by internal id.

        Raises:
            NotFoundException: No product of this platform has that id
        """
        async with self._session() as db:
            product = await crud.product.get(db, product_id)
        if product is None or product.platform != self.platform.value:
            raise NotFoundException(f"Product {product_id} not found for {self.platform.value}")

        async def work(ctx: ReconcileContext):
            records = await self.source.fetch_documents(product.external_id)
            return await self._documents_work(ctx, records), None

        return await self._run_stage(EntityKind.DOCUMENTS, work)

    async def _documents_work(
        self, ctx: ReconcileContext, records: List[DocumentRecord]
    ) -> BatchOutcome:
        products: Dict[str, Product] = {}

        async def preload(ctx: ReconcileContext, records: List[DocumentRecord]):
            products.update(
                await crud.product.find_by_external_ids(
                    ctx.db, self.platform.value, (r.product_external_id for r in records)
                )
            )
            external_by_id = {p.id: p.external_id for p in products.values()}
            documents = await crud.product_document.get_map_for_products(
                ctx.db, external_by_id.keys()
            )
            return EntityLookupCache(
                {(external_by_id[pid], url): doc for (pid, url), doc in documents.items()}
            )

        async def mapper(record: DocumentRecord, existing, ctx: ReconcileContext):
            return await mappers.map_document(record, existing, ctx, products)

        spec = ReconciliationSpec(
            name="documents",
            fetch=None,
            external_id=lambda r: (r.product_external_id, r.document_url),
            mapper=mapper,
            preload=preload,
            batch_size=self.config.document_batch_size,
        )
        run = await self.engine.reconcile(spec, ctx, records)
        return run.outcome

    # =============================================================================
    # Full pipeline
    # =============================================================================

    async def sync_full(self) -> schemas.FullSyncResult:
        """Run every stage in dependency order.

        The adapter cache is invalidated first so the run sees a fresh snapshot. A failed
        stage is reported and the remaining stages still run.
        """
        started = time.monotonic()
        self.source.invalidate_cache()
        stages = [
            (EntityKind.CATEGORIES, self.sync_categories),
            (EntityKind.MANUFACTURERS, self.sync_manufacturers),
            (EntityKind.PARAMETERS, self.sync_parameters),
            (EntityKind.PRODUCTS, self.sync_products),
            (EntityKind.DOCUMENTS, self.sync_documents),
        ]

        results: List[schemas.SyncRunResult] = []
        for kind, stage in stages:
            stage_started = time.monotonic()
            try:
                results.append(await stage())
            except Exception as e:
                results.append(
                    schemas.SyncRunResult(
                        sync_type=sync_type_for(self.platform, kind),
                        success=False,
                        message=str(e) or type(e).__name__,
                        duration_ms=int((time.monotonic() - stage_started) * 1000),
                    )
                )

        return schemas.FullSyncResult(
            platform=self.platform.value,
            success=all(r.success for r in results),
            duration_ms=int((time.monotonic() - started) * 1000),
            stages=results,
        )
