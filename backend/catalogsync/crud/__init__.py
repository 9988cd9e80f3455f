"""CRUD singletons for the catalog models."""

from catalogsync.crud.crud_category import category
from catalogsync.crud.crud_manufacturer import manufacturer
from catalogsync.crud.crud_parameter import parameter, parameter_option
from catalogsync.crud.crud_product import product, product_document, product_parameter
from catalogsync.crud.crud_sync_log import sync_log

__all__ = [
    "category",
    "manufacturer",
    "parameter",
    "parameter_option",
    "product",
    "product_document",
    "product_parameter",
    "sync_log",
]
