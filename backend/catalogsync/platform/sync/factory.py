"""Module for the sync factory that wires platform runners from settings."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional

from catalogsync.core.config import settings
from catalogsync.core.exceptions import (
    NotFoundException,
    PlatformDisabledException,
    SyncAlreadyRunningException,
)
from catalogsync.core.logging import logger
from catalogsync.core.shared_models import Platform
from catalogsync.platform.sources import AsbisSource, TekraSource, ValiSource
from catalogsync.platform.sources._base import BaseSource
from catalogsync.platform.sync.catalog_sync import CatalogSync
from catalogsync.platform.sync.config import ReconciliationConfig

SOURCE_CLASSES = {
    Platform.VALI: ValiSource,
    Platform.ASBIS: AsbisSource,
    Platform.TEKRA: TekraSource,
}


def platform_enabled(platform: Platform) -> bool:
    """Whether ``platform`` is switched on and listed in ``SYNC_PLATFORMS``."""
    switch = getattr(settings, f"{platform.code}_API_ENABLED", False)
    listed = {p.strip().lower() for p in settings.SYNC_PLATFORMS}
    return bool(switch) and platform.value in listed


def parse_platform(value: str) -> Platform:
    """Platform named by ``value`` in any letter case.

    Raises:
        NotFoundException: ``value`` names no known platform
    """
    try:
        return Platform(value.strip().lower())
    except ValueError:
        raise NotFoundException(f"Unknown platform '{value}'")


class CatalogSyncFactory:
    """Builds the runners of the enabled platforms and serialises runs per platform.

    Every source adapter (and its response cache) is created once and shared by all
    runs of its platform. One ``asyncio.Lock`` per platform keeps the scheduler, the
    API and manual triggers from running two syncs of the same platform at once.
    """

    def __init__(
        self,
        sources: Optional[Dict[Platform, BaseSource]] = None,
        config: Optional[ReconciliationConfig] = None,
        db_context: Optional[Callable] = None,
    ):
        """Create the factory.

        Args:
            sources: Adapters by platform; built from settings for enabled platforms
                when omitted
            config: Engine knobs shared by every runner
            db_context: Session context factory passed to every runner
        """
        if sources is None:
            sources = {
                platform: source_class.from_settings()
                for platform, source_class in SOURCE_CLASSES.items()
                if platform_enabled(platform)
            }
        self._sources = sources
        self._config = config
        self._db_context = db_context
        self._runners: Dict[Platform, CatalogSync] = {}
        self._locks: Dict[Platform, asyncio.Lock] = {p: asyncio.Lock() for p in Platform}
        logger.info(
            f"[SyncFactory] Enabled platforms: {[p.value for p in self._sources] or 'none'}"
        )

    @property
    def platforms(self) -> List[Platform]:
        """Enabled platforms."""
        return list(self._sources)

    def get_source(self, platform: Platform) -> BaseSource:
        """Adapter of ``platform``.

        Raises:
            PlatformDisabledException: The platform is not enabled
        """
        source = self._sources.get(platform)
        if source is None:
            raise PlatformDisabledException(platform.value)
        return source

    def get(self, platform: Platform) -> CatalogSync:
        """Runner of ``platform``, created on first use.

        Raises:
            PlatformDisabledException: The platform is not enabled
        """
        runner = self._runners.get(platform)
        if runner is None:
            runner = CatalogSync(
                self.get_source(platform), config=self._config, db_context=self._db_context
            )
            self._runners[platform] = runner
        return runner

    def is_running(self, platform: Platform) -> bool:
        """Whether a run of ``platform`` currently holds its lock."""
        return self._locks[platform].locked()

    @asynccontextmanager
    async def exclusive(self, platform: Platform) -> AsyncIterator[CatalogSync]:
        """Hold the lock of ``platform`` for the duration of the block.

        Raises:
            PlatformDisabledException: The platform is not enabled
            SyncAlreadyRunningException: Another run of the platform holds the lock
        """
        runner = self.get(platform)
        lock = self._locks[platform]
        if lock.locked():
            raise SyncAlreadyRunningException(platform.value)
        async with lock:
            yield runner
