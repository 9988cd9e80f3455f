"""CRUD operations for manufacturers."""

from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.models.manufacturer import Manufacturer


class CRUDManufacturer:
    """CRUD operations for manufacturers."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = Manufacturer

    async def get(self, db: AsyncSession, id: int) -> Optional[Manufacturer]:
        """Get a manufacturer by internal id."""
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_platform_map(self, db: AsyncSession, platform: str) -> Dict[str, Manufacturer]:
        """Map external id to manufacturer for every manufacturer of a platform."""
        result = await db.execute(select(self.model).where(self.model.platform == platform))
        return {manufacturer.external_id: manufacturer for manufacturer in result.scalars().all()}


manufacturer = CRUDManufacturer()
