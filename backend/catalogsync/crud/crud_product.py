"""CRUD operations for products and their parameter and document rows."""

from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.models.product import Product, ProductDocument, ProductParameter


class CRUDProduct:
    """CRUD operations for products."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = Product

    async def get(self, db: AsyncSession, id: int) -> Optional[Product]:
        """Get a product by internal id."""
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def find_by_external_ids(
        self, db: AsyncSession, platform: str, external_ids: Iterable[str]
    ) -> Dict[str, Product]:
        """Map external id to product for the given external ids of a platform.

        Args:
            db: Database session
            platform: Source platform value
            external_ids: External ids to look up

        Returns:
            Dict keyed by external id, containing only the products that exist
        """
        ids = list(set(external_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(self.model).where(
                self.model.platform == platform,
                self.model.external_id.in_(ids),
            )
        )
        return {product.external_id: product for product in result.scalars().all()}

    async def get_platform_map(self, db: AsyncSession, platform: str) -> Dict[str, Product]:
        """Map external id to product for every product of a platform."""
        result = await db.execute(select(self.model).where(self.model.platform == platform))
        return {product.external_id: product for product in result.scalars().all()}

    async def slug_exists(
        self, db: AsyncSession, slug: str, exclude_id: Optional[int] = None
    ) -> bool:
        """Check whether ``slug`` is taken by a product other than ``exclude_id``."""
        query = select(self.model.id).where(self.model.slug == slug)
        if exclude_id is not None:
            query = query.where(self.model.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.first() is not None

    async def count_integrity_issues(
        self, db: AsyncSession, platform: Optional[str] = None
    ) -> Dict[str, int]:
        """Count all products and those missing category, manufacturer or price."""

        def _count(*conditions):
            query = select(func.count(self.model.id))
            if platform is not None:
                query = query.where(self.model.platform == platform)
            for condition in conditions:
                query = query.where(condition)
            return query

        total = await db.scalar(_count())
        without_category = await db.scalar(_count(self.model.category_id.is_(None)))
        without_manufacturer = await db.scalar(_count(self.model.manufacturer_id.is_(None)))
        without_price = await db.scalar(_count(self.model.price_client.is_(None)))
        return {
            "total_products": total or 0,
            "products_without_category": without_category or 0,
            "products_without_manufacturer": without_manufacturer or 0,
            "products_without_price": without_price or 0,
        }


class CRUDProductParameter:
    """CRUD operations for product parameter associations."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = ProductParameter

    async def get_pairs(self, db: AsyncSession, product_id: int) -> List[Tuple[int, int]]:
        """Get the ``(parameter_id, option_id)`` pairs stored for a product."""
        result = await db.execute(
            select(self.model.parameter_id, self.model.parameter_option_id)
            .where(self.model.product_id == product_id)
            .order_by(self.model.parameter_id, self.model.parameter_option_id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def replace_for_product(
        self, db: AsyncSession, product_id: int, pairs: Iterable[Tuple[int, int]]
    ) -> int:
        """Replace the whole association set of a product.

        Args:
            db: Database session
            product_id: Internal product id
            pairs: ``(parameter_id, option_id)`` pairs; duplicates are dropped

        Returns:
            Number of associations written
        """
        await db.execute(delete(self.model).where(self.model.product_id == product_id))
        unique_pairs = list(dict.fromkeys(pairs))
        for parameter_id, option_id in unique_pairs:
            db.add(
                self.model(
                    product_id=product_id,
                    parameter_id=parameter_id,
                    parameter_option_id=option_id,
                )
            )
        return len(unique_pairs)


class CRUDProductDocument:
    """CRUD operations for product documents."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = ProductDocument

    async def get_map_for_products(
        self, db: AsyncSession, product_ids: Iterable[int]
    ) -> Dict[Tuple[int, str], ProductDocument]:
        """Map ``(product_id, document_url)`` to document for the given products."""
        ids = list(set(product_ids))
        if not ids:
            return {}
        result = await db.execute(select(self.model).where(self.model.product_id.in_(ids)))
        return {(d.product_id, d.document_url): d for d in result.scalars().all()}


product = CRUDProduct()
product_parameter = CRUDProductParameter()
product_document = CRUDProductDocument()
