"""Asbis source adapter.

Asbis publishes one XML document (``ProductList.xml``) with a flat product list; the
credentials travel as query parameters. Everything else is derived from that list:

- categories: ``ProductCategory`` is level 1 (external id = its name) and
  ``ProductType`` is level 2 (external id = ``"<category>|<type>"``)
- manufacturers: the distinct ``Vendor`` values
- parameters: the ``AttrList/element@Name`` values of a category's products, with the
  distinct ``@Value`` values as options
- documents: the ``ProductCard`` URL of each product

The parsed list is cached on the adapter instance for ``cache_ttl_seconds`` so one full
sync downloads the feed once.
"""

import hashlib
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Set

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
from catalogsync.platform.sources.cache import CachedResponse

PRODUCT_LIST_PATH = "ProductList.xml"
CATEGORY_SEPARATOR = "|"


def option_external_id(value: str) -> str:
    """Stable external id for a free-text attribute value."""
    return hashlib.sha1(value.strip().encode("utf-8")).hexdigest()


def category_external_id(category: Optional[str], product_type: Optional[str]) -> Optional[str]:
    """External id of the deepest category a product belongs to."""
    if not category:
        return None
    if product_type:
        return f"{category}{CATEGORY_SEPARATOR}{product_type}"
    return category


def _text(element: ET.Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def parse_product_list(xml_text: str) -> List[Dict]:
    """Parse ``ProductList.xml`` into plain product dicts.

    Missing optional sub-elements yield ``None`` or empty lists; a product without a
    ``ProductCode`` is dropped.

    Args:
        xml_text: Raw XML body

    Returns:
        One dict per product with keys ``code``, ``vendor``, ``category``, ``type``,
        ``description``, ``card``, ``images`` and ``attributes`` (name/value pairs)
    """
    root = ET.fromstring(xml_text)
    products = []
    for element in root.iter("Product"):
        code = _text(element, "ProductCode")
        if not code:
            continue

        images = []
        main_image = _text(element, "Image")
        if main_image:
            images.append(main_image)
        for image in element.findall("Images/Image"):
            url = (image.text or "").strip()
            if url and url not in images:
                images.append(url)

        attributes = []
        for attr in element.findall("AttrList/element"):
            name = (attr.get("Name") or "").strip()
            value = (attr.get("Value") or "").strip()
            if name and value:
                attributes.append((name, value))

        products.append(
            {
                "code": code,
                "vendor": _text(element, "Vendor"),
                "category": _text(element, "ProductCategory"),
                "type": _text(element, "ProductType"),
                "description": _text(element, "ProductDescription"),
                "card": _text(element, "ProductCard"),
                "images": images,
                "attributes": attributes,
            }
        )
    return products


class AsbisSource(BaseSource):
    """Adapter for the Asbis XML feed."""

    platform = Platform.ASBIS
    HIERARCHICAL_SLUGS = True
    ROOT_SLUG_DISCRIMINATOR = "asbis"

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout_seconds: float = 300.0,
        retry_attempts: int = 3,
        cache_ttl_seconds: float = 300,
        cache: Optional[CachedResponse] = None,
        **kwargs,
    ):
        """Create the adapter; ``kwargs`` are passed to ``BaseSource``."""
        super().__init__(base_url, timeout_seconds, retry_attempts, **kwargs)
        self.username = username
        self.password = password
        self.cache_ttl_seconds = cache_ttl_seconds
        self.cache: CachedResponse[List[Dict]] = cache or CachedResponse()

    @classmethod
    def from_settings(cls, **kwargs) -> "AsbisSource":
        """Build the adapter from the Asbis settings block."""
        return cls(
            base_url=settings.ASBIS_API_BASE_URL,
            username=settings.ASBIS_API_USERNAME,
            password=settings.ASBIS_API_PASSWORD,
            timeout_seconds=settings.ASBIS_API_TIMEOUT_SECONDS,
            retry_attempts=settings.ASBIS_API_RETRY_ATTEMPTS,
            cache_ttl_seconds=settings.ASBIS_CACHE_TTL_SECONDS,
            **kwargs,
        )

    def _auth_params(self) -> Dict[str, str]:
        return {"USERNAME": self.username, "PASSWORD": self.password}

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/xml"}

    def invalidate_cache(self) -> None:
        """Drop the cached product list."""
        self.cache.invalidate()
        self.logger.info(f"{self.label} Product list cache cleared")

    async def _products(self) -> List[Dict]:
        """Return the parsed product list, downloading it when the cache is stale."""
        if not self.cache.is_stale(self.cache_ttl_seconds):
            self.logger.debug(f"{self.label} Using cached product list")
            return self.cache.data

        response = await self._get(PRODUCT_LIST_PATH)
        products = parse_product_list(response.text)
        self.cache.put(products)
        self.logger.info(f"{self.label} Downloaded product list with {len(products)} products")
        return products

    async def test_connection(self):
        """Download the feed and check that it is a product catalog."""
        try:
            response = await self._get(PRODUCT_LIST_PATH)
        except SOURCE_ERRORS as e:
            self.logger.warning(f"{self.label} Connection test failed: {e}")
            return False, f"Connection failed: {e}"
        if "<ProductCatalog" not in response.text:
            self.logger.warning(f"{self.label} Connection test: unexpected payload")
            return False, "Response is not a ProductCatalog document"
        return True, "Connection successful"

    async def fetch_categories(self) -> List[CategoryRecord]:
        """Derive the two-level category tree from the product list."""

        async def _fetch() -> List[CategoryRecord]:
            records: Dict[str, CategoryRecord] = {}
            for product in await self._products():
                category = product["category"]
                if not category:
                    continue
                if category not in records:
                    records[category] = CategoryRecord(
                        external_id=category,
                        name_bg=category,
                        name_en=category,
                        sort_order=len(records),
                    )
                product_type = product["type"]
                if product_type:
                    key = category_external_id(category, product_type)
                    if key not in records:
                        records[key] = CategoryRecord(
                            external_id=key,
                            name_bg=product_type,
                            name_en=product_type,
                            parent_external_id=category,
                            sort_order=len(records),
                        )
            return list(records.values())

        return await self._fetch_or_empty("categories", _fetch)

    async def fetch_manufacturers(self) -> List[ManufacturerRecord]:
        """Distinct vendors of the product list."""

        async def _fetch() -> List[ManufacturerRecord]:
            products = await self._products()
            vendors = dict.fromkeys(p["vendor"] for p in products if p["vendor"])
            return [ManufacturerRecord(external_id=vendor, name=vendor) for vendor in vendors]

        return await self._fetch_or_empty("manufacturers", _fetch)

    async def fetch_parameters(self, category_external_id: str) -> List[ParameterRecord]:
        """Attribute names of the category's products, with their distinct values."""

        async def _fetch() -> List[ParameterRecord]:
            parameters: Dict[str, ParameterRecord] = {}
            seen_options: Dict[str, Set[str]] = {}
            for product in await self._products_of(category_external_id):
                for name, value in product["attributes"]:
                    parameter = parameters.get(name)
                    if parameter is None:
                        parameter = ParameterRecord(
                            external_id=name,
                            category_external_id=category_external_id,
                            name_bg=name,
                            name_en=name,
                            sort_order=len(parameters),
                        )
                        parameters[name] = parameter
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
        """Products whose deepest category is ``category_external_id``."""

        async def _fetch() -> List[ProductRecord]:
            products = await self._products_of(category_external_id)
            return self._convert_each("products", products, self._to_product, key="code")

        return await self._fetch_or_empty(f"products of category {category_external_id}", _fetch)

    async def fetch_documents(
        self, product_external_id: Optional[str] = None
    ) -> List[DocumentRecord]:
        """``ProductCard`` links of one product or of every product."""

        async def _fetch() -> List[DocumentRecord]:
            return [
                DocumentRecord(
                    product_external_id=p["code"],
                    document_url=p["card"],
                    comment_bg="Продуктова карта",
                    comment_en="Product card",
                )
                for p in await self._products()
                if p["card"] and (product_external_id is None or p["code"] == product_external_id)
            ]

        return await self._fetch_or_empty("documents", _fetch)

    async def _products_of(self, category_id: str) -> List[Dict]:
        return [
            p
            for p in await self._products()
            if category_external_id(p["category"], p["type"]) == category_id
        ]

    @staticmethod
    def _to_product(product: Dict) -> ProductRecord:
        return ProductRecord(
            external_id=product["code"],
            category_external_id=category_external_id(product["category"], product["type"]),
            manufacturer_external_id=product["vendor"],
            reference_number=product["code"],
            model=product["code"],
            name_bg=product["description"],
            name_en=product["description"],
            status_code="1",
            images=product["images"],
            parameters=[
                ParameterValueRecord(
                    parameter_external_id=name, option_external_id=option_external_id(value)
                )
                for name, value in product["attributes"]
            ],
        )
