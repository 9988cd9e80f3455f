"""Schemas returned by the sync trigger endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field


class SyncRunResult(BaseModel):
    """Outcome of one sync stage run."""

    sync_type: str = Field(..., description="Run type, e.g. 'ASBIS_CATEGORIES'")
    success: bool
    message: str
    duration_ms: int
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    deferred: int = Field(0, description="Records left for the next run by the time budget")
    sync_log_id: Optional[int] = None


class FullSyncResult(BaseModel):
    """Outcome of the full pipeline of one platform."""

    platform: str
    success: bool = Field(..., description="True when every stage succeeded")
    duration_ms: int
    stages: List[SyncRunResult] = Field(default_factory=list)


class ConnectionTestResult(BaseModel):
    """Outcome of an adapter connectivity check."""

    platform: str
    connected: bool
    message: str


class CacheClearResult(BaseModel):
    """Outcome of invalidating an adapter's response cache."""

    platform: str
    message: str
