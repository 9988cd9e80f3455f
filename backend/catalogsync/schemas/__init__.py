"""Pydantic schemas for the API."""

from catalogsync.schemas.sync import (
    CacheClearResult,
    ConnectionTestResult,
    FullSyncResult,
    SyncRunResult,
)
from catalogsync.schemas.sync_log import IntegrityReport, SyncLog, SyncLogBase

__all__ = [
    "CacheClearResult",
    "ConnectionTestResult",
    "FullSyncResult",
    "IntegrityReport",
    "SyncLog",
    "SyncLogBase",
    "SyncRunResult",
]
