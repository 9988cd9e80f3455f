"""Service for recording sync runs in the sync log.

Audit writes use their own short-lived session so that a stage's rollback never takes
its log row with it, and a failing audit write never blocks reconciliation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

from catalogsync import crud
from catalogsync.core.datetime_utils import utc_now_naive
from catalogsync.core.logging import logger
from catalogsync.core.shared_models import ErrorStatusPolicy, SyncStatus
from catalogsync.db.session import get_db_context
from catalogsync.platform.sync.results import BatchOutcome

DEGRADED_RUN_ID = -1


@dataclass
class RunHandle:
    """Reference to the sync log row of a running stage.

    A handle with a negative id is a degraded placeholder: the insert failed, the run
    proceeds, and completion is only logged.
    """

    id: int
    sync_type: str
    started_at: datetime
    completed: bool = False

    @property
    def degraded(self) -> bool:
        """Whether the run has no persisted log row."""
        return self.id < 0


def resolve_status(
    outcome: BatchOutcome, policy: ErrorStatusPolicy
) -> Tuple[SyncStatus, Optional[str]]:
    """Status and message of a stage that finished without raising.

    Args:
        outcome: Aggregated counters of the stage
        policy: How to record a stage with per-record errors

    Returns:
        ``(status, message)``; message is None for a clean run
    """
    if outcome.errors == 0:
        return SyncStatus.SUCCESS, None
    message = f"Completed with {outcome.errors} errors"
    if outcome.error_samples:
        message += ": " + "; ".join(outcome.error_samples)
    if policy == ErrorStatusPolicy.FAIL_ON_ERRORS:
        return SyncStatus.FAILED, message
    return SyncStatus.SUCCESS, message


class SyncLogService:
    """Service for creating and completing sync log rows."""

    def __init__(self, db_context: Optional[Callable] = None):
        """Create the service.

        Args:
            db_context: Session context factory; defaults to ``get_db_context``
        """
        self._db_context = db_context

    def _session(self):
        return (self._db_context or get_db_context)()

    async def create_run(self, sync_type: str) -> RunHandle:
        """Insert an ``IN_PROGRESS`` row for ``sync_type``.

        Never raises: if the insert fails a degraded handle with id ``-1`` is returned.
        """
        started_at = utc_now_naive()
        try:
            async with self._session() as db:
                db_log = await crud.sync_log.create(db, sync_type)
                await db.commit()
                logger.info(f"[SyncLog] Started {sync_type} run {db_log.id}")
                return RunHandle(id=db_log.id, sync_type=sync_type, started_at=started_at)
        except Exception as e:
            logger.error(f"[SyncLog] Failed to create {sync_type} log, continuing without: {e}")
            return RunHandle(id=DEGRADED_RUN_ID, sync_type=sync_type, started_at=started_at)

    async def complete_run(
        self,
        handle: RunHandle,
        status: SyncStatus,
        outcome: Optional[BatchOutcome] = None,
        error: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Write the final state of a run, exactly once per handle.

        Never raises; degraded handles and repeated calls are only logged.

        Args:
            handle: Handle returned by ``create_run``
            status: Final status
            outcome: Counters of the run
            error: Failure or completion message
            duration_ms: Wall-clock duration
        """
        if handle.completed:
            logger.warning(f"[SyncLog] Run {handle.id} ({handle.sync_type}) already completed")
            return
        handle.completed = True

        outcome = outcome or BatchOutcome()
        if handle.degraded:
            logger.info(
                f"[SyncLog] {handle.sync_type} finished with {status.value} (not persisted): "
                f"{outcome.summary()}"
            )
            return

        try:
            async with self._session() as db:
                db_log = await crud.sync_log.get(db, handle.id)
                if db_log is None:
                    logger.error(f"[SyncLog] Sync log {handle.id} not found")
                    return
                db_log.status = status.value
                db_log.records_processed = outcome.processed
                db_log.records_created = outcome.created
                db_log.records_updated = outcome.updated
                db_log.error_count = outcome.errors
                db_log.error_message = error
                db_log.duration_ms = duration_ms
                db_log.completed_at = utc_now_naive()
                await db.commit()
            logger.info(
                f"[SyncLog] Completed {handle.sync_type} run {handle.id} with {status.value}: "
                f"{outcome.summary()}"
            )
        except Exception as e:
            logger.error(f"[SyncLog] Failed to complete sync log {handle.id}: {e}")


# Singleton instance
sync_log_service = SyncLogService()
