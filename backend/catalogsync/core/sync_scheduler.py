"""Cron-driven scheduled trigger for full catalog syncs.

At every cron tick the scheduler runs the full pipeline of each enabled platform in
turn. A platform whose previous run still holds its lock is skipped for that tick.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from cron_converter import Cron

from catalogsync.core.config import settings
from catalogsync.core.exceptions import PlatformDisabledException, SyncAlreadyRunningException
from catalogsync.core.logging import logger
from catalogsync.platform.sync.factory import CatalogSyncFactory

MAX_SLEEP_SECONDS = 60.0


class SyncScheduler:
    """Runs full syncs of the enabled platforms on a cron schedule."""

    def __init__(
        self,
        factory: CatalogSyncFactory,
        cron_expression: Optional[str] = None,
        enabled: Optional[bool] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Create the scheduler.

        Args:
            factory: Registry of platform runners and their locks
            cron_expression: Five-field cron expression; defaults to ``SYNC_CRON``
            enabled: Whether ticks run syncs; defaults to ``SYNC_ENABLED``
            clock: Current time (timezone-aware)

        Raises:
            ValueError: The cron expression is invalid
        """
        self.factory = factory
        self.cron_expression = cron_expression or settings.SYNC_CRON
        self.enabled = settings.SYNC_ENABLED if enabled is None else enabled
        self._clock = clock
        try:
            self.cron = Cron(self.cron_expression)
        except ValueError as exc:
            logger.error(f"[Scheduler] Invalid cron schedule '{self.cron_expression}': {exc}")
            raise ValueError(f"Invalid cron schedule: {exc}") from exc
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.next_run_at: Optional[datetime] = None

    def next_run_after(self, moment: datetime) -> datetime:
        """First scheduled time strictly after ``moment``."""
        return self.cron.schedule(start_date=moment).next()

    async def run_once(self) -> Dict[str, str]:
        """Run one tick: the full pipeline of every enabled platform, one after another.

        Returns:
            Outcome per platform: ``success``, ``completed_with_failures``, ``skipped``,
            ``failed`` or ``disabled``
        """
        if not self.enabled:
            logger.info("[Scheduler] Scheduled sync is disabled (SYNC_ENABLED=false)")
            return {}

        outcomes: Dict[str, str] = {}
        for platform in self.factory.platforms:
            try:
                async with self.factory.exclusive(platform) as runner:
                    result = await runner.sync_full()
                outcomes[platform.value] = (
                    "success" if result.success else "completed_with_failures"
                )
                logger.info(
                    f"[Scheduler] Full sync of {platform.value} finished in "
                    f"{result.duration_ms}ms (success={result.success})"
                )
            except SyncAlreadyRunningException:
                logger.warning(f"[Scheduler] {platform.value} sync already running; skipping")
                outcomes[platform.value] = "skipped"
            except PlatformDisabledException:
                outcomes[platform.value] = "disabled"
            except Exception as e:
                logger.error(
                    f"[Scheduler] Full sync of {platform.value} failed: {e}", exc_info=True
                )
                outcomes[platform.value] = "failed"
        return outcomes

    async def start(self) -> None:
        """Start the scheduler task."""
        if self.running:
            logger.warning("[Scheduler] Already running")
            return
        self.running = True
        self.task = asyncio.create_task(self._run_loop())
        logger.info(f"[Scheduler] Started with cron schedule '{self.cron_expression}'")

    async def stop(self) -> None:
        """Stop the scheduler task."""
        self.running = False
        if self.task is not None:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("[Scheduler] Stopped")

    async def _run_loop(self) -> None:
        self.next_run_at = self.next_run_after(self._clock())
        while self.running:
            try:
                now = self._clock()
                if self.next_run_at <= now:
                    logger.info(f"[Scheduler] Sync due (scheduled {self.next_run_at.isoformat()})")
                    await self.run_once()
                    self.next_run_at = self.next_run_after(self._clock())
                    continue

                sleep_seconds = min((self.next_run_at - now).total_seconds(), MAX_SLEEP_SECONDS)
                logger.debug(
                    f"[Scheduler] Next sync at {self.next_run_at.isoformat()}, "
                    f"sleeping {sleep_seconds:.0f}s"
                )
                await asyncio.sleep(sleep_seconds)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[Scheduler] Error in scheduler loop: {e}", exc_info=True)
                await asyncio.sleep(MAX_SLEEP_SECONDS)
