"""CRUD operations for categories."""

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.models.category import Category


class CRUDCategory:
    """CRUD operations for categories."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = Category

    async def get(self, db: AsyncSession, id: int) -> Optional[Category]:
        """Get a category by internal id."""
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_platform_map(self, db: AsyncSession, platform: str) -> Dict[str, Category]:
        """Map external id to category for every category of a platform.

        Args:
            db: Database session
            platform: Source platform value

        Returns:
            Dict keyed by external id
        """
        result = await db.execute(select(self.model).where(self.model.platform == platform))
        return {category.external_id: category for category in result.scalars().all()}

    async def get_by_external_ids(
        self, db: AsyncSession, platform: str, external_ids: List[str]
    ) -> List[Category]:
        """Get the categories of a platform whose external id is in ``external_ids``."""
        if not external_ids:
            return []
        result = await db.execute(
            select(self.model).where(
                self.model.platform == platform,
                self.model.external_id.in_(external_ids),
            )
        )
        return list(result.scalars().all())

    async def slug_exists(
        self, db: AsyncSession, slug: str, exclude_id: Optional[int] = None
    ) -> bool:
        """Check whether ``slug`` is taken by a category other than ``exclude_id``."""
        query = select(self.model.id).where(self.model.slug == slug)
        if exclude_id is not None:
            query = query.where(self.model.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.first() is not None


category = CRUDCategory()
