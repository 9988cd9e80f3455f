"""Read side of the sync audit log: recent runs, last runs and data integrity."""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync import crud, schemas
from catalogsync.core.exceptions import NotFoundException

INTEGRITY_OK = "OK"
INTEGRITY_ISSUES = "ISSUES_FOUND"


class SyncAuditService:
    """Service for the audit query surface."""

    async def recent_runs(
        self, db: AsyncSession, limit: int = 50, type_prefix: Optional[str] = None
    ) -> List[schemas.SyncLog]:
        """Most recent runs, newest first, optionally filtered by sync type prefix."""
        db_logs = await crud.sync_log.get_recent(db, limit=limit, type_prefix=type_prefix)
        return [schemas.SyncLog.model_validate(db_log) for db_log in db_logs]

    async def last_run_per_type(self, db: AsyncSession) -> List[schemas.SyncLog]:
        """Newest run of every sync type."""
        db_logs = await crud.sync_log.get_last_per_type(db)
        return [schemas.SyncLog.model_validate(db_log) for db_log in db_logs]

    async def last_run(self, db: AsyncSession, sync_type: str) -> schemas.SyncLog:
        """Newest run of ``sync_type``.

        Raises:
            NotFoundException: No run of that type was recorded
        """
        db_log = await crud.sync_log.get_last_by_type(db, sync_type.upper())
        if db_log is None:
            raise NotFoundException(f"No sync runs of type {sync_type.upper()}")
        return schemas.SyncLog.model_validate(db_log)

    async def integrity_check(
        self, db: AsyncSession, platform: Optional[str] = None
    ) -> schemas.IntegrityReport:
        """Count products with a missing category, manufacturer or price.

        Args:
            db: Database session
            platform: Restrict the check to one platform

        Returns:
            The report; ``status`` is ``OK`` when every counter is zero
        """
        counts = await crud.product.count_integrity_issues(db, platform=platform)
        issues = (
            counts["products_without_category"]
            + counts["products_without_manufacturer"]
            + counts["products_without_price"]
        )
        return schemas.IntegrityReport(
            platform=platform,
            status=INTEGRITY_ISSUES if issues else INTEGRITY_OK,
            **counts,
        )


# Singleton instance
sync_audit_service = SyncAuditService()
