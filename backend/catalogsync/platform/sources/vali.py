"""Vali source adapter.

Vali exposes a bearer-token JSON REST API. Localised texts arrive as lists of
``{"languageCode": ..., "text": ...}``; only Bulgarian and English are kept.
"""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from catalogsync.core.config import settings
from catalogsync.core.shared_models import Platform
from catalogsync.platform.entities import (
    CategoryRecord,
    ContactBlock,
    DocumentRecord,
    ManufacturerRecord,
    OptionRecord,
    ParameterRecord,
    ParameterValueRecord,
    ProductRecord,
)
from catalogsync.platform.sources._base import BaseSource


def localized(texts: Optional[Iterable[Dict[str, Any]]]) -> Tuple[Optional[str], Optional[str]]:
    """Pick the ``(bg, en)`` texts out of a Vali localised list."""
    name_bg = name_en = None
    for entry in texts or []:
        code = (entry.get("languageCode") or "").lower()
        if code == "bg":
            name_bg = entry.get("text")
        elif code == "en":
            name_en = entry.get("text")
    return name_bg, name_en


def _contact(payload: Optional[Dict[str, Any]]) -> Optional[ContactBlock]:
    if not payload:
        return None
    return ContactBlock(
        name=payload.get("name"), email=payload.get("email"), address=payload.get("address")
    )


class ValiSource(BaseSource):
    """Adapter for the Vali JSON API."""

    platform = Platform.VALI

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_seconds: float = 120.0,
        retry_attempts: int = 3,
        excluded_category_ids: Optional[Iterable[str]] = None,
        **kwargs,
    ):
        """Create the adapter; ``kwargs`` are passed to ``BaseSource``."""
        super().__init__(base_url, timeout_seconds, retry_attempts, **kwargs)
        self.token = token
        self._excluded = {str(i).strip() for i in (excluded_category_ids or [])}

    @classmethod
    def from_settings(cls, **kwargs) -> "ValiSource":
        """Build the adapter from the Vali settings block."""
        return cls(
            base_url=settings.VALI_API_BASE_URL,
            token=settings.VALI_API_TOKEN,
            timeout_seconds=settings.VALI_API_TIMEOUT_SECONDS,
            retry_attempts=settings.VALI_API_RETRY_ATTEMPTS,
            excluded_category_ids=settings.VALI_EXCLUDED_CATEGORY_IDS,
            **kwargs,
        )

    @property
    def excluded_category_ids(self) -> Set[str]:
        """Category ids configured to never be synced."""
        return set(self._excluded)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}

    async def fetch_categories(self) -> List[CategoryRecord]:
        """Fetch ``/categories``."""

        async def _fetch() -> List[CategoryRecord]:
            payload = await self._get_json("categories")
            return self._convert_each("categories", payload, self._to_category)

        return await self._fetch_or_empty("categories", _fetch)

    async def fetch_manufacturers(self) -> List[ManufacturerRecord]:
        """Fetch ``/manufacturers``."""

        async def _fetch() -> List[ManufacturerRecord]:
            payload = await self._get_json("manufacturers")
            return self._convert_each("manufacturers", payload, self._to_manufacturer)

        return await self._fetch_or_empty("manufacturers", _fetch)

    async def fetch_parameters(self, category_external_id: str) -> List[ParameterRecord]:
        """Fetch ``/parameters/{categoryId}``; options are embedded in each parameter."""

        async def _fetch() -> List[ParameterRecord]:
            payload = await self._get_json(f"parameters/{category_external_id}")
            return self._convert_each(
                "parameters", payload, lambda item: self._to_parameter(item, category_external_id)
            )

        return await self._fetch_or_empty(
            f"parameters of category {category_external_id}", _fetch
        )

    async def fetch_products(self, category_external_id: str) -> List[ProductRecord]:
        """Fetch ``/products/by_category/{categoryId}/full``."""

        async def _fetch() -> List[ProductRecord]:
            payload = await self._get_json(f"products/by_category/{category_external_id}/full")
            return self._convert_each("products", payload, self._to_product)

        return await self._fetch_or_empty(f"products of category {category_external_id}", _fetch)

    async def fetch_documents(
        self, product_external_id: Optional[str] = None
    ) -> List[DocumentRecord]:
        """Fetch ``/products/{id}/documents`` or, without an id, ``/documents``."""

        def _to_document(item: Dict[str, Any]) -> DocumentRecord:
            comment_bg, comment_en = localized(item.get("comment"))
            return DocumentRecord(
                product_external_id=item.get("productId") or product_external_id,
                document_url=item["documentUrl"],
                comment_bg=comment_bg,
                comment_en=comment_en,
            )

        async def _fetch() -> List[DocumentRecord]:
            if product_external_id is not None:
                payload = await self._get_json(f"products/{product_external_id}/documents")
            else:
                payload = await self._get_json("documents")
            return self._convert_each("documents", payload, _to_document, key="documentUrl")

        scope = f"product {product_external_id}" if product_external_id else "all products"
        return await self._fetch_or_empty(f"documents of {scope}", _fetch)

    @staticmethod
    def _to_manufacturer(item: Dict[str, Any]) -> ManufacturerRecord:
        return ManufacturerRecord(
            external_id=item["id"],
            name=item.get("name") or str(item["id"]),
            information=_contact(item.get("information")),
            eu_representative=_contact(
                item.get("euRepresentative") or item.get("eu_representative")
            ),
        )

    @staticmethod
    def _to_category(item: Dict[str, Any]) -> CategoryRecord:
        name_bg, name_en = localized(item.get("name"))
        return CategoryRecord(
            external_id=item["id"],
            name_bg=name_bg,
            name_en=name_en,
            parent_external_id=item.get("parent"),
            sort_order=item.get("order") or 0,
            visible=item.get("show", True) is not False,
        )

    @staticmethod
    def _to_parameter(item: Dict[str, Any], category_external_id: str) -> ParameterRecord:
        name_bg, name_en = localized(item.get("name"))
        options = []
        for option in item.get("options") or []:
            option_bg, option_en = localized(option.get("name"))
            options.append(
                OptionRecord(
                    external_id=option["id"],
                    name_bg=option_bg,
                    name_en=option_en,
                    sort_order=option.get("order") or 0,
                )
            )
        return ParameterRecord(
            external_id=item["id"],
            category_external_id=category_external_id,
            name_bg=name_bg,
            name_en=name_en,
            sort_order=item.get("order") or 0,
            options=options,
        )

    @staticmethod
    def _to_product(item: Dict[str, Any]) -> ProductRecord:
        name_bg, name_en = localized(item.get("name"))
        description_bg, description_en = localized(item.get("description"))
        categories = item.get("categories") or []
        images = [image.get("href") for image in item.get("images") or [] if image.get("href")]
        parameters = [
            ParameterValueRecord(
                parameter_external_id=value["parameterId"],
                option_external_id=value["optionId"],
            )
            for value in item.get("parameters") or []
            if value.get("parameterId") is not None and value.get("optionId") is not None
        ]
        return ProductRecord(
            external_id=item["id"],
            category_external_id=categories[0].get("id") if categories else None,
            manufacturer_external_id=item.get("manufacturerId"),
            workflow_id=item.get("idWF"),
            reference_number=item.get("referenceNumber"),
            model=item.get("model"),
            barcode=item.get("barcode"),
            status_code=item.get("status"),
            name_bg=name_bg,
            name_en=name_en,
            description_bg=description_bg,
            description_en=description_en,
            price_client=item.get("priceClient"),
            price_partner=item.get("pricePartner"),
            price_promo=item.get("pricePromo"),
            price_client_promo=item.get("priceClientPromo"),
            show=item.get("show", True) is not False,
            warranty=item.get("warranty"),
            weight=item.get("weight"),
            images=images,
            parameters=parameters,
        )


