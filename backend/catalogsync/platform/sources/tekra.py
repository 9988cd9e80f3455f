"""Tekra source adapter.

Tekra serves JSON behind an ``X-Api-Key`` header. Categories are identified by their
slug; products are listed per category with free-form ``specs`` that are turned into
parameters and options the same way as Asbis attributes.
"""

from typing import Any, Dict, List, Optional, Set, Tuple

from catalogsync.core.config import settings
from catalogsync.core.shared_models import Platform
from catalogsync.platform.entities import (
    CategoryRecord,
    DocumentRecord,
    ManufacturerRecord,
    OptionRecord,
    ParameterRecord,
    ParameterValueRecord,
    ProductRecord,
)
from catalogsync.platform.sources._base import SOURCE_ERRORS, BaseSource
from catalogsync.platform.sources.asbis import option_external_id
from catalogsync.platform.sources.cache import CachedResponse


def _specs_of(product: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Non-blank ``(name, value)`` pairs of a product's ``specs`` mapping."""
    pairs = []
    for name, value in (product.get("specs") or {}).items():
        value = str(value).strip()
        if value:
            pairs.append((str(name), value))
    return pairs


class TekraSource(BaseSource):
    """Adapter for the Tekra JSON API."""

    platform = Platform.TEKRA
    HIERARCHICAL_SLUGS = True

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 120.0,
        retry_attempts: int = 3,
        cache_ttl_seconds: float = 300,
        **kwargs,
    ):
        """Create the adapter; ``kwargs`` are passed to ``BaseSource``."""
        super().__init__(base_url, timeout_seconds, retry_attempts, **kwargs)
        self.api_key = api_key
        self.cache_ttl_seconds = cache_ttl_seconds
        self.categories_cache: CachedResponse[List[Dict[str, Any]]] = CachedResponse()
        self.products_cache: Dict[str, CachedResponse[List[Dict[str, Any]]]] = {}

    @classmethod
    def from_settings(cls, **kwargs) -> "TekraSource":
        """Build the adapter from the Tekra settings block."""
        return cls(
            base_url=settings.TEKRA_API_BASE_URL,
            api_key=settings.TEKRA_API_KEY,
            timeout_seconds=settings.TEKRA_API_TIMEOUT_SECONDS,
            retry_attempts=settings.TEKRA_API_RETRY_ATTEMPTS,
            cache_ttl_seconds=settings.TEKRA_CACHE_TTL_SECONDS,
            **kwargs,
        )

    def _headers(self) -> Dict[str, str]:
        return {"X-Api-Key": self.api_key, "Accept": "application/json"}

    def invalidate_cache(self) -> None:
        """Drop cached categories and product lists."""
        self.categories_cache.invalidate()
        self.products_cache.clear()
        self.logger.info(f"{self.label} Response cache cleared")

    async def _raw_categories(self) -> List[Dict[str, Any]]:
        if self.categories_cache.is_stale(self.cache_ttl_seconds):
            payload = await self._get_json("categories") or []
            if not isinstance(payload, list):
                raise ValueError(f"expected a list of categories, got {type(payload).__name__}")
            self.categories_cache.put(payload)
        return self.categories_cache.data

    async def _raw_products(self, category_slug: str) -> List[Dict[str, Any]]:
        cache = self.products_cache.setdefault(category_slug, CachedResponse())
        if cache.is_stale(self.cache_ttl_seconds):
            payload = await self._get_json("products", {"category": category_slug}) or []
            if not isinstance(payload, list):
                raise ValueError(f"expected a list of products, got {type(payload).__name__}")
            cache.put(payload)
        return cache.data

    async def _all_raw_products(self) -> List[Dict[str, Any]]:
        """Products of every category; a category whose list cannot be fetched is skipped."""
        products = []
        for category in await self._raw_categories():
            slug = category.get("slug") if isinstance(category, dict) else None
            if not slug:
                continue
            try:
                items = await self._raw_products(slug)
            except SOURCE_ERRORS as e:
                self.logger.warning(
                    f"{self.label} Skipping products of category {slug}: {type(e).__name__}: {e}"
                )
                continue
            products.extend(item for item in items if isinstance(item, dict))
        return products

    async def fetch_categories(self) -> List[CategoryRecord]:
        """Fetch ``/categories``."""

        async def _fetch() -> List[CategoryRecord]:
            return self._convert_each(
                "categories", await self._raw_categories(), self._to_category, key="slug"
            )

        return await self._fetch_or_empty("categories", _fetch)

    async def fetch_manufacturers(self) -> List[ManufacturerRecord]:
        """Distinct brands across every category's products."""

        async def _fetch() -> List[ManufacturerRecord]:
            products = await self._all_raw_products()
            brands = dict.fromkeys(str(p["brand"]) for p in products if p.get("brand"))
            return [ManufacturerRecord(external_id=brand, name=brand) for brand in brands]

        return await self._fetch_or_empty("manufacturers", _fetch)

    async def fetch_parameters(self, category_external_id: str) -> List[ParameterRecord]:
        """Spec names of the category's products, with their distinct values."""

        async def _fetch() -> List[ParameterRecord]:
            products = await self._raw_products(category_external_id)
            spec_lists = self._convert_each("product specs", products, _specs_of, key="sku")
            parameters: Dict[str, ParameterRecord] = {}
            seen_options: Dict[str, Set[str]] = {}
            for specs in spec_lists:
                for name, value in specs:
                    parameter = parameters.setdefault(
                        name,
                        ParameterRecord(
                            external_id=name,
                            category_external_id=category_external_id,
                            name_bg=name,
                            name_en=name,
                            sort_order=len(parameters),
                        ),
                    )
                    option_id = option_external_id(value)
                    seen = seen_options.setdefault(name, set())
                    if option_id not in seen:
                        seen.add(option_id)
                        parameter.options.append(
                            OptionRecord(
                                external_id=option_id,
                                name_bg=value,
                                name_en=value,
                                sort_order=len(parameter.options),
                            )
                        )
            return list(parameters.values())

        return await self._fetch_or_empty(
            f"parameters of category {category_external_id}", _fetch
        )

    async def fetch_products(self, category_external_id: str) -> List[ProductRecord]:
        """Fetch ``/products?category=<slug>``."""

        async def _fetch() -> List[ProductRecord]:
            return self._convert_each(
                "products",
                await self._raw_products(category_external_id),
                lambda item: self._to_product(item, category_external_id),
                key="sku",
            )

        return await self._fetch_or_empty(f"products of category {category_external_id}", _fetch)

    async def fetch_documents(
        self, product_external_id: Optional[str] = None
    ) -> List[DocumentRecord]:
        """Documents listed on the products."""

        async def _fetch() -> List[DocumentRecord]:
            products = [
                p
                for p in await self._all_raw_products()
                if product_external_id is None or str(p.get("sku")) == product_external_id
            ]
            per_product = self._convert_each(
                "product documents", products, self._documents_of, key="sku"
            )
            return [record for records in per_product for record in records]

        return await self._fetch_or_empty("documents", _fetch)

    @staticmethod
    def _to_category(item: Dict[str, Any]) -> CategoryRecord:
        return CategoryRecord(
            external_id=item["slug"],
            name_bg=item.get("name"),
            name_en=item.get("name"),
            parent_external_id=item.get("parent_slug"),
            sort_order=item.get("sort_order") or 0,
            source_slug=item["slug"],
        )

    @staticmethod
    def _documents_of(product: Dict[str, Any]) -> List[DocumentRecord]:
        records = []
        for document in product.get("documents") or []:
            if isinstance(document, str):
                document = {"url": document}
            if not document.get("url"):
                continue
            records.append(
                DocumentRecord(
                    product_external_id=product["sku"],
                    document_url=document["url"],
                    comment_bg=document.get("title"),
                    comment_en=document.get("title"),
                )
            )
        return records

    @staticmethod
    def _to_product(item: Dict[str, Any], category_slug: str) -> ProductRecord:
        return ProductRecord(
            external_id=item["sku"],
            category_external_id=item.get("category_slug") or category_slug,
            manufacturer_external_id=item.get("brand"),
            reference_number=item["sku"],
            model=item.get("model") or item["sku"],
            name_bg=item.get("name"),
            name_en=item.get("name"),
            description_bg=item.get("description"),
            description_en=item.get("description"),
            price_client=item.get("price"),
            price_partner=item.get("partner_price"),
            price_promo=item.get("promo_price"),
            status_code=item.get("status", "1"),
            images=[url for url in item.get("images") or [] if url],
            parameters=[
                ParameterValueRecord(
                    parameter_external_id=name, option_external_id=option_external_id(value)
                )
                for name, value in _specs_of(item)
            ],
        )
