"""Stuck-run monitor.

A run that crashed (or whose process was killed) before its completion write stays
``IN_PROGRESS`` forever. The monitor periodically flips such rows to ``FAILED``; it is the
only mechanism that reclaims them.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from catalogsync import crud
from catalogsync.core.config import settings
from catalogsync.core.datetime_utils import utc_now_naive
from catalogsync.core.logging import logger
from catalogsync.core.shared_models import SyncStatus
from catalogsync.db.session import get_db_context

STUCK_MESSAGE = "Stuck - marked as failed by monitor"


class SyncMonitorService:
    """Service that reclaims sync log rows stuck in ``IN_PROGRESS``."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        stuck_threshold: Optional[timedelta] = None,
        db_context: Optional[Callable] = None,
    ):
        """Create the monitor.

        Args:
            interval_seconds: Seconds between sweeps
            stuck_threshold: Age after which an ``IN_PROGRESS`` row counts as stuck
            db_context: Session context factory; defaults to ``get_db_context``
        """
        self.interval_seconds = interval_seconds or settings.SYNC_MONITOR_INTERVAL_SECONDS
        self.stuck_threshold = stuck_threshold or timedelta(
            hours=settings.SYNC_STUCK_THRESHOLD_HOURS
        )
        self._db_context = db_context
        self.running = False
        self.task: Optional[asyncio.Task] = None

    def _session(self):
        return (self._db_context or get_db_context)()

    async def sweep_stuck_runs(self, now: Optional[datetime] = None) -> List[int]:
        """Mark every stuck run as ``FAILED``.

        Args:
            now: Reference time (naive UTC); defaults to the current time

        Returns:
            Ids of the rows that were reclaimed
        """
        now = now or utc_now_naive()
        cutoff = now - self.stuck_threshold
        async with self._session() as db:
            stuck = await crud.sync_log.get_stuck(db, started_before=cutoff)
            for db_log in stuck:
                db_log.status = SyncStatus.FAILED.value
                db_log.error_message = STUCK_MESSAGE
                db_log.completed_at = now
                if db_log.created_at is not None:
                    db_log.duration_ms = int((now - db_log.created_at).total_seconds() * 1000)
            await db.commit()
            reclaimed = [db_log.id for db_log in stuck]

        if reclaimed:
            logger.warning(
                f"[Monitor] Marked {len(reclaimed)} stuck runs as failed: {reclaimed}"
            )
        else:
            logger.debug("[Monitor] No stuck runs")
        return reclaimed

    async def start(self) -> None:
        """Start the periodic sweep task."""
        if self.running:
            logger.warning("[Monitor] Already running")
            return
        self.running = True
        self.task = asyncio.create_task(self._run_loop())
        logger.info(
            f"[Monitor] Started (every {self.interval_seconds}s, "
            f"threshold {self.stuck_threshold})"
        )

    async def stop(self) -> None:
        """Stop the periodic sweep task."""
        self.running = False
        if self.task is not None:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("[Monitor] Stopped")

    async def _run_loop(self) -> None:
        while self.running:
            try:
                await self.sweep_stuck_runs()
            except Exception as e:
                logger.error(f"[Monitor] Sweep failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)


# Singleton instance
sync_monitor_service = SyncMonitorService()
