"""Sync log schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SyncLogBase(BaseModel):
    """Base schema for sync logs."""

    sync_type: str = Field(..., description="Run type, e.g. 'VALI_PRODUCTS'")
    status: str = Field(..., description="IN_PROGRESS, SUCCESS or FAILED")


class SyncLog(SyncLogBase):
    """Complete sync log schema."""

    id: int
    records_processed: int = Field(0, description="Records created or updated")
    records_created: int = 0
    records_updated: int = 0
    error_count: int = Field(0, description="Records that failed")
    error_message: Optional[str] = Field(None, description="Failure or completion message")
    duration_ms: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class IntegrityReport(BaseModel):
    """Aggregate data quality counters over products."""

    platform: Optional[str] = Field(None, description="Platform filter, None for all")
    total_products: int
    products_without_category: int
    products_without_manufacturer: int
    products_without_price: int
    status: str = Field(..., description="OK or ISSUES_FOUND")
