"""Platform-neutral records produced by source adapters.

Adapters translate vendor payloads into these shapes; nothing downstream of an adapter
knows about vendor field names. External ids are always strings, whatever type the
vendor uses.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _as_external_id(value):
    if value is None:
        return None
    return str(value).strip()


class CategoryRecord(BaseModel):
    """One category node as seen by a source."""

    external_id: str = Field(..., description="Category id on the source platform")
    name_bg: Optional[str] = None
    name_en: Optional[str] = None
    parent_external_id: Optional[str] = Field(
        None, description="External id of the parent, None or '0' for a root"
    )
    sort_order: int = 0
    visible: bool = True
    source_slug: Optional[str] = Field(
        None, description="Slug segment supplied by the source, preferred over a derived one"
    )

    @field_validator("external_id", "parent_external_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)

    @property
    def is_root(self) -> bool:
        """Whether the record has no parent reference."""
        return self.parent_external_id in (None, "", "0")

    @property
    def display_name(self) -> str:
        """English name when present, Bulgarian otherwise."""
        return self.name_en or self.name_bg or ""


class ContactBlock(BaseModel):
    """Contact details of a manufacturer or its EU representative."""

    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class ManufacturerRecord(BaseModel):
    """One manufacturer as seen by a source."""

    external_id: str
    name: str
    information: Optional[ContactBlock] = None
    eu_representative: Optional[ContactBlock] = None

    @field_validator("external_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)


class OptionRecord(BaseModel):
    """One value of a parameter."""

    external_id: str
    name_bg: Optional[str] = None
    name_en: Optional[str] = None
    sort_order: int = 0

    @field_validator("external_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)


class ParameterRecord(BaseModel):
    """A parameter of one category, with its options."""

    external_id: str
    category_external_id: str
    name_bg: Optional[str] = None
    name_en: Optional[str] = None
    sort_order: int = 0
    options: List[OptionRecord] = Field(default_factory=list)

    @field_validator("external_id", "category_external_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)


class ParameterValueRecord(BaseModel):
    """A product's claim that it has ``option`` for ``parameter``."""

    parameter_external_id: str
    option_external_id: str

    @field_validator("parameter_external_id", "option_external_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)


class ProductRecord(BaseModel):
    """One product as seen by a source."""

    external_id: str
    category_external_id: Optional[str] = None
    manufacturer_external_id: Optional[str] = None
    workflow_id: Optional[str] = None
    reference_number: Optional[str] = None
    model: Optional[str] = None
    barcode: Optional[str] = None
    status_code: Optional[str] = None
    name_bg: Optional[str] = None
    name_en: Optional[str] = None
    description_bg: Optional[str] = None
    description_en: Optional[str] = None
    price_client: Optional[Decimal] = None
    price_partner: Optional[Decimal] = None
    price_promo: Optional[Decimal] = None
    price_client_promo: Optional[Decimal] = None
    show: bool = True
    warranty: Optional[int] = None
    weight: Optional[Decimal] = None
    images: List[str] = Field(default_factory=list, description="First image is the primary")
    parameters: List[ParameterValueRecord] = Field(default_factory=list)

    @field_validator(
        "external_id",
        "category_external_id",
        "manufacturer_external_id",
        "workflow_id",
        "reference_number",
        "status_code",
        mode="before",
    )
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)

    @property
    def display_name(self) -> str:
        """English name when present, Bulgarian otherwise."""
        return self.name_en or self.name_bg or self.model or self.external_id


class DocumentRecord(BaseModel):
    """A document attached to a product."""

    product_external_id: str
    document_url: str
    comment_bg: Optional[str] = None
    comment_en: Optional[str] = None

    @field_validator("product_external_id", mode="before")
    @classmethod
    def normalize_ids(cls, value):
        """Store numeric or padded vendor ids as trimmed strings."""
        return _as_external_id(value)
