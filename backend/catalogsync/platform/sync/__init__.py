"""Sync module for the catalog.

Provides:
- ChunkedReconciliationEngine: Generic batch reconciliation of one entity kind
- CatalogSync: Runs the stages of one platform in dependency order
- CatalogSyncFactory: Builds and guards the runners of the enabled platforms
- RecordResult / BatchOutcome: Per-record results and their pure aggregation

Only the result types are re-exported here; import the runner modules directly.
"""

from .results import BatchOutcome, RecordAction, RecordResult, aggregate

__all__ = [
    "BatchOutcome",
    "RecordAction",
    "RecordResult",
    "aggregate",
]
