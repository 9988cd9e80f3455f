"""Platform-neutral catalog records."""

from catalogsync.platform.entities.records import (
    CategoryRecord,
    ContactBlock,
    DocumentRecord,
    ManufacturerRecord,
    OptionRecord,
    ParameterRecord,
    ParameterValueRecord,
    ProductRecord,
)

__all__ = [
    "CategoryRecord",
    "ContactBlock",
    "DocumentRecord",
    "ManufacturerRecord",
    "OptionRecord",
    "ParameterRecord",
    "ParameterValueRecord",
    "ProductRecord",
]
