"""Chunked reconciliation engine.

One engine serves every entity kind of every platform. A stage describes a kind with a
``ReconciliationSpec`` (fetch, external id extractor, mapper, preload) and the engine
does the rest:

1. fetch the candidate list; an empty list ends the run with a zero outcome
2. preload the existing entities into an ``EntityLookupCache`` with one bulk query
3. split the candidates into fixed-size batches
4. reconcile each record inside its own SAVEPOINT and turn it into a ``RecordResult``
5. release the session identity map every ``flush_every`` records and commit per batch
6. stop a batch early when it exceeds its wall-clock budget, deferring the rest
7. pause between batches
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Hashable, List, Optional, TypeVar

from sqlalchemy.exc import DataError, IntegrityError, InterfaceError, OperationalError

from catalogsync.platform.sync.context import ReconcileContext
from catalogsync.platform.sync.exceptions import EntityProcessingError, SyncFailureError
from catalogsync.platform.sync.lookup_cache import EntityLookupCache
from catalogsync.platform.sync.results import BatchOutcome, RecordResult, aggregate

R = TypeVar("R")
E = TypeVar("E")


@dataclass
class ReconciliationSpec(Generic[R, E]):
    """Everything the engine needs to know about one entity kind.

    Attributes:
        name: Kind name used in log lines (e.g. ``categories``)
        fetch: Returns the candidate records
        external_id: Extracts the lookup key of a record
        mapper: ``mapper(record, existing, ctx)`` creates a new entity when ``existing``
            is None or mutates ``existing`` in place, and returns the entity. Returning
            None skips the record. Raising ``EntityProcessingError`` fails it.
        preload: ``preload(ctx, records)`` returns the existing entities keyed like
            ``external_id`` does, using bulk queries only
        batch_size: Overrides the configured batch size
    """

    name: str
    fetch: Callable[[], Awaitable[List[R]]]
    external_id: Callable[[R], Hashable]
    mapper: Callable[[R, Optional[E], ReconcileContext], Awaitable[Optional[E]]]
    preload: Callable[[ReconcileContext, List[R]], Awaitable[EntityLookupCache]]
    batch_size: Optional[int] = None


@dataclass
class ReconciliationRun(Generic[E]):
    """Result of one engine run: the outcome and the lookup cache it ended with."""

    outcome: BatchOutcome
    cache: EntityLookupCache
    records: List


def chunked(items: List, size: int) -> List[List]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    return [items[i : i + size] for i in range(0, len(items), size)]


class ChunkedReconciliationEngine:
    """Runs a ``ReconciliationSpec`` against the database of a ``ReconcileContext``."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Create the engine; ``clock`` and ``sleep`` are injectable for tests."""
        self._clock = clock
        self._sleep = sleep

    async def run(self, spec: ReconciliationSpec, ctx: ReconcileContext) -> ReconciliationRun:
        """Fetch, preload and reconcile every record of ``spec``.

        Args:
            spec: The entity kind to reconcile
            ctx: Stage context (session, config, logger)

        Returns:
            The aggregated outcome with the final lookup cache

        Raises:
            SyncFailureError: The database became unusable
        """
        records = await spec.fetch()
        if not records:
            ctx.logger.info(f"[Engine] No {spec.name} to reconcile")
            return ReconciliationRun(BatchOutcome(), EntityLookupCache(), [])
        return await self.reconcile(spec, ctx, records)

    async def reconcile(
        self, spec: ReconciliationSpec, ctx: ReconcileContext, records: List
    ) -> ReconciliationRun:
        """Reconcile already fetched ``records``; see ``run``."""
        if not records:
            return ReconciliationRun(BatchOutcome(), EntityLookupCache(), [])

        cache = await spec.preload(ctx, records)
        batch_size = spec.batch_size or ctx.config.batch_size
        batches = chunked(records, batch_size)
        ctx.logger.info(
            f"[Engine] Reconciling {len(records)} {spec.name} in {len(batches)} batches "
            f"({len(cache)} already known)"
        )

        outcome = BatchOutcome()
        for index, batch in enumerate(batches, start=1):
            batch_outcome = await self._process_batch(spec, ctx, cache, batch)
            outcome = outcome.merge(batch_outcome)
            ctx.logger.debug(
                f"[Engine] {spec.name} batch {index}/{len(batches)}: {batch_outcome.summary()}"
            )
            if index < len(batches) and ctx.config.batch_pause_seconds > 0:
                await self._sleep(ctx.config.batch_pause_seconds)

        ctx.logger.info(
            f"[Engine] Reconciled {outcome.total} {spec.name}: {outcome.summary()}"
        )
        return ReconciliationRun(outcome, cache, records)

    async def _process_batch(
        self,
        spec: ReconciliationSpec,
        ctx: ReconcileContext,
        cache: EntityLookupCache,
        batch: List,
    ) -> BatchOutcome:
        results: List[RecordResult] = []
        deferred = 0
        started = self._clock()
        budget = ctx.config.max_batch_duration_seconds

        for position, record in enumerate(batch):
            elapsed = self._clock() - started
            if elapsed > budget:
                deferred = len(batch) - position
                ctx.logger.warning(
                    f"[Engine] {spec.name} batch exceeded {budget:.0f}s after {elapsed:.1f}s; "
                    f"deferring {deferred} records to the next run"
                )
                break

            results.append(await self._process_record(spec, ctx, cache, record))

            if (position + 1) % ctx.config.flush_every == 0:
                await self._checkpoint(ctx, commit=False)

        await self._checkpoint(ctx, commit=True)
        return aggregate(results).with_deferred(deferred)

    async def _process_record(
        self,
        spec: ReconciliationSpec,
        ctx: ReconcileContext,
        cache: EntityLookupCache,
        record,
    ) -> RecordResult:
        key = spec.external_id(record)
        existing = cache.get(key)
        try:
            async with ctx.uow.savepoint():
                if existing is not None:
                    ctx.db.add(existing)
                entity = await spec.mapper(record, existing, ctx)
                if entity is not None:
                    ctx.db.add(entity)
        except (OperationalError, InterfaceError) as e:
            raise SyncFailureError(f"Database unavailable while reconciling {key}: {e}") from e
        except EntityProcessingError as e:
            ctx.logger.error(f"[Engine] Failed to reconcile {spec.name} {key}: {e}")
            return RecordResult.failed(key, str(e))
        except (IntegrityError, DataError) as e:
            ctx.logger.error(f"[Engine] Constraint violation for {spec.name} {key}: {e.orig}")
            return RecordResult.failed(key, f"{type(e).__name__}: {e.orig}")
        except Exception as e:
            ctx.logger.error(
                f"[Engine] Unexpected error reconciling {spec.name} {key}: {e}", exc_info=True
            )
            return RecordResult.failed(key, f"{type(e).__name__}: {e}")

        if entity is None:
            return RecordResult.skipped(key)
        cache.put(key, entity)
        if existing is None:
            return RecordResult.created(key, entity)
        return RecordResult.updated(key, entity)

    async def _checkpoint(self, ctx: ReconcileContext, commit: bool) -> None:
        try:
            await ctx.uow.flush_and_release()
            if commit:
                await ctx.uow.commit()
        except (OperationalError, InterfaceError) as e:
            raise SyncFailureError(f"Database unavailable while flushing: {e}") from e
