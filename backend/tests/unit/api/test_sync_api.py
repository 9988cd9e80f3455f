"""Tests for the sync trigger endpoints.

The platform registry is replaced with a mock; the endpoints, dependencies and error
mapping are real.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from catalogsync.api.v1.api import api_router
from catalogsync.core.exceptions import (
    NotFoundException,
    PlatformDisabledException,
    SyncAlreadyRunningException,
)
from catalogsync.core.shared_models import Platform
from catalogsync.schemas import FullSyncResult, SyncRunResult


def _run_result(sync_type: str = "VALI_CATEGORIES") -> SyncRunResult:
    return SyncRunResult(
        sync_type=sync_type,
        success=True,
        message=f"{sync_type} completed",
        duration_ms=12,
        processed=3,
        created=2,
        updated=1,
        sync_log_id=41,
    )


@pytest.fixture
def runner():
    """Runner whose stages return canned results."""
    runner = MagicMock()
    for name in (
        "sync_categories",
        "sync_manufacturers",
        "sync_parameters",
        "sync_products",
        "sync_documents",
        "sync_products_for_category",
        "sync_documents_for_product",
    ):
        setattr(runner, name, AsyncMock(return_value=_run_result()))
    runner.sync_full = AsyncMock(
        return_value=FullSyncResult(
            platform="vali", success=True, duration_ms=100, stages=[_run_result()]
        )
    )
    return runner


@pytest.fixture
def factory(runner):
    """Registry mock handing out ``runner`` under the platform lock."""
    factory = MagicMock()
    factory.exclusive_error = None

    @asynccontextmanager
    async def exclusive(platform):
        if factory.exclusive_error is not None:
            raise factory.exclusive_error
        yield runner

    factory.exclusive = exclusive
    return factory


@pytest.fixture
def client(factory):
    """Test client for an app carrying the mocked registry."""
    app = FastAPI()
    app.include_router(api_router)
    app.state.sync_factory = factory
    return TestClient(app)


class TestStageTriggers:
    """Tests for the per-stage and full sync triggers."""

    def test_stage_trigger_returns_run_result(self, client, runner):
        """Test that a stage run is reported as returned by the runner."""
        response = client.post("/sync/vali/categories")

        assert response.status_code == 200
        data = response.json()
        assert data["sync_type"] == "VALI_CATEGORIES"
        assert data["created"] == 2
        assert data["sync_log_id"] == 41
        runner.sync_categories.assert_awaited_once()

    @pytest.mark.parametrize(
        "kind, method",
        [
            ("manufacturers", "sync_manufacturers"),
            ("parameters", "sync_parameters"),
            ("products", "sync_products"),
            ("documents", "sync_documents"),
        ],
    )
    def test_each_kind_maps_to_its_stage(self, client, runner, kind, method):
        """Test the entity kind to stage mapping."""
        response = client.post(f"/sync/asbis/{kind}")

        assert response.status_code == 200
        getattr(runner, method).assert_awaited_once()

    def test_full_sync(self, client, runner):
        """Test the full pipeline trigger."""
        response = client.post("/sync/VALI/full")

        assert response.status_code == 200
        assert response.json()["platform"] == "vali"
        assert len(response.json()["stages"]) == 1

    def test_single_category_products(self, client, runner):
        """Test the per-category product trigger."""
        response = client.post("/sync/vali/categories/17/products")

        assert response.status_code == 200
        runner.sync_products_for_category.assert_awaited_once_with(17)

    def test_single_product_documents(self, client, runner):
        """Test the per-product document trigger."""
        response = client.post("/sync/vali/products/5/documents")

        assert response.status_code == 200
        runner.sync_documents_for_product.assert_awaited_once_with(5)


class TestErrorMapping:
    """Tests for HTTP status codes of failed triggers."""

    def test_unknown_platform_is_404(self, client):
        """Test that an unknown platform name is not found."""
        response = client.post("/sync/acme/categories")

        assert response.status_code == 404
        assert "acme" in response.json()["detail"]

    def test_unknown_kind_is_422(self, client):
        """Test that an unknown entity kind fails validation."""
        response = client.post("/sync/vali/warehouses")

        assert response.status_code == 422

    def test_disabled_platform_is_409(self, client, factory):
        """Test that a disabled platform is a conflict."""
        factory.exclusive_error = PlatformDisabledException("tekra")

        response = client.post("/sync/tekra/categories")

        assert response.status_code == 409
        assert response.json()["detail"] == "Platform 'tekra' is disabled"

    def test_already_running_is_409(self, client, factory):
        """Test that a concurrent run of the same platform is refused."""
        factory.exclusive_error = SyncAlreadyRunningException("vali")

        response = client.post("/sync/vali/full")

        assert response.status_code == 409
        assert "already running" in response.json()["detail"]

    def test_missing_category_is_404(self, client, runner):
        """Test that a not-found raised by the runner becomes 404."""
        runner.sync_products_for_category.side_effect = NotFoundException(
            "Category 17 not found for vali"
        )

        response = client.post("/sync/vali/categories/17/products")

        assert response.status_code == 404
        assert response.json()["detail"] == "Category 17 not found for vali"

    def test_stage_failure_is_500(self, client, runner):
        """Test that an unexpected stage failure becomes 500 with its message."""
        runner.sync_products.side_effect = RuntimeError("database unavailable")

        response = client.post("/sync/vali/products")

        assert response.status_code == 500
        assert response.json()["detail"] == "database unavailable"

    def test_uninitialised_registry_is_503(self):
        """Test the response before the application finished starting."""
        app = FastAPI()
        app.include_router(api_router)

        response = TestClient(app).post("/sync/vali/categories")

        assert response.status_code == 503


class TestSourceEndpoints:
    """Tests for connection checks and cache invalidation."""

    def test_test_connection(self, client, factory):
        """Test that the adapter's connection check is reported."""
        source = MagicMock()
        source.test_connection = AsyncMock(return_value=(False, "Connection failed: 401"))
        factory.get_source.return_value = source

        response = client.get("/sync/vali/test-connection")

        assert response.status_code == 200
        assert response.json() == {
            "platform": "vali",
            "connected": False,
            "message": "Connection failed: 401",
        }
        factory.get_source.assert_called_once_with(Platform.VALI)

    def test_test_connection_disabled_platform(self, client, factory):
        """Test the connection check of a disabled platform."""
        factory.get_source.side_effect = PlatformDisabledException("tekra")

        response = client.get("/sync/tekra/test-connection")

        assert response.status_code == 409

    def test_clear_cache(self, client, factory):
        """Test that the adapter cache is invalidated."""
        source = MagicMock()
        factory.get_source.return_value = source

        response = client.post("/sync/asbis/clear-cache")

        assert response.status_code == 200
        assert response.json() == {"platform": "asbis", "message": "Cache cleared"}
        source.invalidate_cache.assert_called_once()
