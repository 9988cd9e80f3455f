"""CRUD operations for sync logs."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.core.shared_models import SyncStatus
from catalogsync.models.sync_log import SyncLog


class CRUDSyncLog:
    """CRUD operations for sync logs."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = SyncLog

    async def create(self, db: AsyncSession, sync_type: str) -> SyncLog:
        """Insert an ``IN_PROGRESS`` row for ``sync_type`` and flush it to get its id."""
        db_obj = self.model(sync_type=sync_type, status=SyncStatus.IN_PROGRESS.value)
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def get(self, db: AsyncSession, id: int) -> Optional[SyncLog]:
        """Get a sync log by id."""
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_recent(
        self, db: AsyncSession, limit: int = 50, type_prefix: Optional[str] = None
    ) -> List[SyncLog]:
        """Get the most recent runs, newest first.

        Args:
            db: Database session
            limit: Maximum number of rows
            type_prefix: Only runs whose sync type starts with this (e.g. ``ASBIS``)

        Returns:
            List of sync logs
        """
        query = select(self.model)
        if type_prefix:
            query = query.where(self.model.sync_type.startswith(type_prefix.upper()))
        query = query.order_by(self.model.created_at.desc(), self.model.id.desc()).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_last_by_type(self, db: AsyncSession, sync_type: str) -> Optional[SyncLog]:
        """Get the newest run of one sync type."""
        result = await db.execute(
            select(self.model)
            .where(self.model.sync_type == sync_type)
            .order_by(self.model.created_at.desc(), self.model.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_last_per_type(self, db: AsyncSession) -> List[SyncLog]:
        """Get the newest run of every sync type, ordered by type."""
        newest = (
            select(func.max(self.model.id).label("id"))
            .group_by(self.model.sync_type)
            .subquery()
        )
        result = await db.execute(
            select(self.model)
            .join(newest, newest.c.id == self.model.id)
            .order_by(self.model.sync_type)
        )
        return list(result.scalars().all())

    async def get_stuck(self, db: AsyncSession, started_before: datetime) -> List[SyncLog]:
        """Get ``IN_PROGRESS`` runs created before ``started_before``."""
        result = await db.execute(
            select(self.model).where(
                self.model.status == SyncStatus.IN_PROGRESS.value,
                self.model.created_at < started_before,
            )
        )
        return list(result.scalars().all())


sync_log = CRUDSyncLog()
