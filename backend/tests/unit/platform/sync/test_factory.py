"""Tests for the platform registry and its per-platform locks."""

from unittest.mock import MagicMock, patch

import pytest

from catalogsync.core.config import settings
from catalogsync.core.exceptions import (
    NotFoundException,
    PlatformDisabledException,
    SyncAlreadyRunningException,
)
from catalogsync.core.shared_models import Platform
from catalogsync.platform.sync.catalog_sync import CatalogSync
from catalogsync.platform.sync.factory import (
    CatalogSyncFactory,
    parse_platform,
    platform_enabled,
)


def _source(platform: Platform) -> MagicMock:
    source = MagicMock()
    source.platform = platform
    return source


@pytest.fixture
def factory(engine_config):
    """Factory with Vali and Asbis enabled and Tekra disabled."""
    return CatalogSyncFactory(
        sources={
            Platform.VALI: _source(Platform.VALI),
            Platform.ASBIS: _source(Platform.ASBIS),
        },
        config=engine_config,
    )


@pytest.mark.parametrize("value", ["vali", "VALI", " Vali "])
def test_parse_platform_ignores_case(value):
    """Test platform name parsing."""
    assert parse_platform(value) == Platform.VALI


def test_parse_platform_rejects_unknown_name():
    """Test that an unknown platform is a not-found error."""
    with pytest.raises(NotFoundException):
        parse_platform("acme")


def test_platform_enabled_needs_switch_and_listing():
    """Test that a platform must be switched on and listed."""
    with patch.object(settings, "SYNC_PLATFORMS", ["vali", "asbis"]), patch.object(
        settings, "ASBIS_API_ENABLED", True
    ), patch.object(settings, "TEKRA_API_ENABLED", True), patch.object(
        settings, "VALI_API_ENABLED", False
    ):
        assert platform_enabled(Platform.ASBIS)
        assert not platform_enabled(Platform.TEKRA)
        assert not platform_enabled(Platform.VALI)


def test_platforms_lists_enabled_sources(factory):
    """Test the enabled platform list."""
    assert factory.platforms == [Platform.VALI, Platform.ASBIS]


def test_runner_is_created_once(factory):
    """Test that runners are cached per platform."""
    runner = factory.get(Platform.VALI)

    assert isinstance(runner, CatalogSync)
    assert runner.platform == Platform.VALI
    assert factory.get(Platform.VALI) is runner


def test_disabled_platform_is_rejected(factory):
    """Test that a platform without an adapter cannot be used."""
    with pytest.raises(PlatformDisabledException):
        factory.get_source(Platform.TEKRA)
    with pytest.raises(PlatformDisabledException):
        factory.get(Platform.TEKRA)


@pytest.mark.asyncio
async def test_exclusive_rejects_concurrent_run_of_same_platform(factory):
    """Test that a second run of a locked platform is refused."""
    async with factory.exclusive(Platform.VALI) as runner:
        assert factory.is_running(Platform.VALI)
        assert runner is factory.get(Platform.VALI)

        with pytest.raises(SyncAlreadyRunningException):
            async with factory.exclusive(Platform.VALI):
                pass

        # Other platforms are independent
        async with factory.exclusive(Platform.ASBIS):
            assert factory.is_running(Platform.ASBIS)

    assert not factory.is_running(Platform.VALI)


@pytest.mark.asyncio
async def test_exclusive_releases_lock_on_error(factory):
    """Test that a failing run does not leave the platform locked."""
    with pytest.raises(RuntimeError):
        async with factory.exclusive(Platform.VALI):
            raise RuntimeError("stage failed")

    assert not factory.is_running(Platform.VALI)
