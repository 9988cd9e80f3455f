"""CRUD operations for parameters and parameter options.

External ids of parameters repeat across categories and external ids of options repeat
across parameters, so every lookup here is scoped by the owning row.
"""

from typing import Dict, Iterable, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.models.parameter import Parameter, ParameterOption


class CRUDParameter:
    """CRUD operations for parameters."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = Parameter

    async def get_map_for_categories(
        self, db: AsyncSession, platform: str, category_ids: Iterable[int]
    ) -> Dict[Tuple[int, str], Parameter]:
        """Map ``(category_id, external_id)`` to parameter for the given categories.

        Args:
            db: Database session
            platform: Source platform value
            category_ids: Internal category ids

        Returns:
            Dict keyed by (category id, external id)
        """
        ids = list(category_ids)
        if not ids:
            return {}
        result = await db.execute(
            select(self.model).where(
                self.model.platform == platform,
                self.model.category_id.in_(ids),
            )
        )
        return {(p.category_id, p.external_id): p for p in result.scalars().all()}

    async def find_in_category(
        self, db: AsyncSession, category_id: int, platform: str, external_ids: Iterable[str]
    ) -> List[Parameter]:
        """Get the parameters of one category whose external id is in ``external_ids``."""
        ids = list(set(external_ids))
        if not ids:
            return []
        result = await db.execute(
            select(self.model).where(
                self.model.category_id == category_id,
                self.model.platform == platform,
                self.model.external_id.in_(ids),
            )
        )
        return list(result.scalars().all())


class CRUDParameterOption:
    """CRUD operations for parameter options."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = ParameterOption

    async def get_map_for_parameters(
        self, db: AsyncSession, parameter_ids: Iterable[int]
    ) -> Dict[Tuple[int, str], ParameterOption]:
        """Map ``(parameter_id, external_id)`` to option for the given parameters."""
        ids = list(parameter_ids)
        if not ids:
            return {}
        result = await db.execute(select(self.model).where(self.model.parameter_id.in_(ids)))
        return {(o.parameter_id, o.external_id): o for o in result.scalars().all()}

    async def find_in_category(
        self, db: AsyncSession, category_id: int, platform: str, external_ids: Iterable[str]
    ) -> List[ParameterOption]:
        """Get options of any parameter of one category whose external id matches."""
        ids = list(set(external_ids))
        if not ids:
            return []
        result = await db.execute(
            select(self.model)
            .join(Parameter, Parameter.id == self.model.parameter_id)
            .where(
                Parameter.category_id == category_id,
                self.model.platform == platform,
                self.model.external_id.in_(ids),
            )
        )
        return list(result.scalars().all())


parameter = CRUDParameter()
parameter_option = CRUDParameterOption()
