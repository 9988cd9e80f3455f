"""Reconciliation engine configuration."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from catalogsync.core.config import settings
from catalogsync.core.shared_models import ErrorStatusPolicy


class ReconciliationConfig(BaseModel):
    """Knobs of the chunked reconciliation engine and the stage runner.

    Built from settings in production and constructed directly in tests.
    """

    batch_size: int = Field(30, gt=0, description="Records per batch for most entity kinds")
    option_batch_size: int = Field(20, gt=0, description="Records per batch for options")
    document_batch_size: int = Field(20, gt=0, description="Records per batch for documents")
    flush_every: int = Field(
        20, gt=0, description="Release the session identity map after this many records"
    )
    max_batch_duration_seconds: float = Field(
        300.0, gt=0, description="Soft wall-clock budget of one batch"
    )
    batch_pause_seconds: float = Field(0.15, ge=0, description="Pause between batches")
    error_status_policy: ErrorStatusPolicy = ErrorStatusPolicy.SUCCESS_WITH_ERRORS
    slug_max_attempts: int = Field(1000, gt=0)
    default_markup_percentage: Decimal = Decimal("20")

    @field_validator("error_status_policy", mode="before")
    @classmethod
    def parse_policy(cls, value):
        """Accept the policy in any letter case."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_settings(cls) -> "ReconciliationConfig":
        """Build the configuration from ``settings``."""
        return cls(
            batch_size=settings.SYNC_BATCH_SIZE,
            option_batch_size=settings.SYNC_OPTION_BATCH_SIZE,
            document_batch_size=settings.SYNC_DOCUMENT_BATCH_SIZE,
            flush_every=settings.SYNC_FLUSH_EVERY,
            max_batch_duration_seconds=settings.SYNC_MAX_BATCH_DURATION_MINUTES * 60,
            batch_pause_seconds=settings.SYNC_BATCH_PAUSE_MS / 1000,
            error_status_policy=settings.SYNC_ERROR_STATUS_POLICY,
            slug_max_attempts=settings.SLUG_MAX_ATTEMPTS,
            default_markup_percentage=Decimal(str(settings.PRODUCT_DEFAULT_MARKUP_PERCENTAGE)),
        )
