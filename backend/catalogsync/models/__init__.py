"""Models for the catalog database."""

from catalogsync.models._base import Base
from catalogsync.models.category import Category
from catalogsync.models.manufacturer import Manufacturer
from catalogsync.models.parameter import Parameter, ParameterOption
from catalogsync.models.product import Product, ProductDocument, ProductParameter
from catalogsync.models.sync_log import SyncLog

__all__ = [
    "Base",
    "Category",
    "Manufacturer",
    "Parameter",
    "ParameterOption",
    "Product",
    "ProductDocument",
    "ProductParameter",
    "SyncLog",
]
