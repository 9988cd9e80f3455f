"""Shared enums used across models, schemas and services."""

from enum import Enum


class Platform(str, Enum):
    """External system a catalog row was sourced from."""

    VALI = "vali"
    ASBIS = "asbis"
    TEKRA = "tekra"

    @property
    def code(self) -> str:
        """Upper-case code used in sync type names."""
        return self.value.upper()


class EntityKind(str, Enum):
    """Entity kinds reconciled by a sync stage, in dependency order."""

    CATEGORIES = "categories"
    MANUFACTURERS = "manufacturers"
    PARAMETERS = "parameters"
    PRODUCTS = "products"
    DOCUMENTS = "documents"


class SyncStatus(str, Enum):
    """Status of a sync run as recorded in the sync log."""

    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ErrorStatusPolicy(str, Enum):
    """How a run that finished with per-record errors is recorded."""

    SUCCESS_WITH_ERRORS = "success_with_errors"
    FAIL_ON_ERRORS = "fail_on_errors"


class ProductStatus(str, Enum):
    """Availability status of a product."""

    NOT_AVAILABLE = "NOT_AVAILABLE"
    AVAILABLE = "AVAILABLE"
    LIMITED_QUANTITY = "LIMITED_QUANTITY"
    ON_REQUEST = "ON_REQUEST"

    @classmethod
    def from_code(cls, code) -> "ProductStatus":
        """Map a numeric vendor status code; unknown codes are not available."""
        return _STATUS_CODES.get(str(code).strip() if code is not None else "", cls.NOT_AVAILABLE)


_STATUS_CODES = {
    "0": ProductStatus.NOT_AVAILABLE,
    "1": ProductStatus.AVAILABLE,
    "2": ProductStatus.LIMITED_QUANTITY,
    "3": ProductStatus.ON_REQUEST,
}


def sync_type_for(platform: Platform, kind: EntityKind) -> str:
    """Build the sync type name, e.g. ``VALI_CATEGORIES``."""
    return f"{platform.code}_{kind.value.upper()}"
