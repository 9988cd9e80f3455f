"""Record to entity mappers shared by every platform.

Each mapper follows the engine contract: given a record and the existing entity (or
None) it returns the created or updated entity, None to skip the record, or raises
``EntityProcessingError`` for a mapping error.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from catalogsync import crud
from catalogsync.core.shared_models import ProductStatus
from catalogsync.models import (
    Category,
    Manufacturer,
    Parameter,
    ParameterOption,
    Product,
    ProductDocument,
)
from catalogsync.platform.entities import (
    CategoryRecord,
    DocumentRecord,
    ManufacturerRecord,
    OptionRecord,
    ParameterRecord,
    ProductRecord,
)
from catalogsync.platform.sync.context import ReconcileContext
from catalogsync.platform.sync.exceptions import EntityProcessingError
from catalogsync.platform.sync.lookup_cache import EntityLookupCache
from catalogsync.platform.sync.parameter_graph import ParameterGraphResolver
from catalogsync.platform.sync.slug import SlugGenerator, extract_discriminator


def _ensure_platform(entity, ctx: ReconcileContext, kind: str) -> None:
    if entity is not None and entity.platform != ctx.platform.value:
        raise EntityProcessingError(
            f"{kind} {entity.external_id} belongs to platform {entity.platform}, "
            f"not {ctx.platform.value}"
        )


# =============================================================================
# Categories
# =============================================================================


async def map_category(
    record: CategoryRecord,
    existing: Optional[Category],
    ctx: ReconcileContext,
    cache: EntityLookupCache,
    slugs: SlugGenerator,
) -> Optional[Category]:
    """Create or update one category node; parent links are left to the hierarchy pass."""
    if record.external_id in ctx.source.excluded_category_ids:
        return None
    _ensure_platform(existing, ctx, "Category")

    if existing is None:
        category = Category(
            platform=ctx.platform.value,
            external_id=record.external_id,
            name_bg=record.name_bg,
            name_en=record.name_en,
            sort_order=record.sort_order,
            visible=record.visible,
        )
        category.slug = await _category_slug(record, None, ctx, cache, slugs)
        return category

    name_changed = existing.display_name != record.display_name
    existing.name_bg = record.name_bg
    existing.name_en = record.name_en
    existing.sort_order = record.sort_order
    existing.visible = record.visible
    if name_changed or not existing.slug:
        existing.slug = await _category_slug(record, existing.id, ctx, cache, slugs)
    return existing


async def _category_slug(
    record: CategoryRecord,
    exclude_id: Optional[int],
    ctx: ReconcileContext,
    cache: EntityLookupCache,
    slugs: SlugGenerator,
) -> str:
    parent = None if record.is_root else cache.get(record.parent_external_id)
    parent_slug = parent.slug if ctx.source.HIERARCHICAL_SLUGS and parent is not None else None

    if record.is_root and ctx.source.ROOT_SLUG_DISCRIMINATOR:
        discriminator = ctx.source.ROOT_SLUG_DISCRIMINATOR
    else:
        discriminator = extract_discriminator(record.display_name)

    async def exists(slug: str) -> bool:
        return await crud.category.slug_exists(ctx.db, slug, exclude_id=exclude_id)

    return await slugs.unique_slug(
        record.source_slug or record.display_name,
        exists,
        parent_slug=parent_slug,
        discriminator=discriminator,
        start=2 if parent_slug else 1,
        fallback=f"category-{record.external_id}",
    )


# =============================================================================
# Manufacturers
# =============================================================================


async def map_manufacturer(
    record: ManufacturerRecord, existing: Optional[Manufacturer], ctx: ReconcileContext
) -> Manufacturer:
    """Create or update one manufacturer; contact blocks are only overwritten when sent."""
    _ensure_platform(existing, ctx, "Manufacturer")
    manufacturer = existing or Manufacturer(
        platform=ctx.platform.value, external_id=record.external_id
    )
    manufacturer.name = record.name

    if record.information is not None:
        manufacturer.information_name = record.information.name
        manufacturer.information_email = record.information.email
        manufacturer.information_address = record.information.address

    if record.eu_representative is not None:
        manufacturer.eu_representative_name = record.eu_representative.name
        manufacturer.eu_representative_email = record.eu_representative.email
        manufacturer.eu_representative_address = record.eu_representative.address

    return manufacturer


# =============================================================================
# Parameters and options
# =============================================================================


@dataclass(frozen=True)
class OptionCandidate:
    """An option record bound to the internal id of its parameter."""

    parameter_id: int
    record: OptionRecord


async def map_parameter(
    record: ParameterRecord,
    existing: Optional[Parameter],
    ctx: ReconcileContext,
    category: Category,
) -> Parameter:
    """Create or update one parameter of ``category``."""
    parameter = existing or Parameter(
        platform=ctx.platform.value,
        external_id=record.external_id,
        category_id=category.id,
    )
    parameter.name_bg = record.name_bg
    parameter.name_en = record.name_en
    parameter.sort_order = record.sort_order
    return parameter


async def map_option(
    candidate: OptionCandidate, existing: Optional[ParameterOption], ctx: ReconcileContext
) -> ParameterOption:
    """Create or update one option of an already persisted parameter."""
    record = candidate.record
    option = existing or ParameterOption(
        parameter_id=candidate.parameter_id,
        platform=ctx.platform.value,
        external_id=record.external_id,
    )
    option.name_bg = record.name_bg
    option.name_en = record.name_en
    option.sort_order = record.sort_order
    return option


# =============================================================================
# Products
# =============================================================================


@dataclass
class ProductMappingState:
    """Lookups and counters shared by the product mapper during one stage."""

    categories: EntityLookupCache
    manufacturers: Dict[str, Manufacturer]
    resolver: ParameterGraphResolver
    slugs: SlugGenerator
    default_category: Optional[Category] = None
    unmapped_parameters: int = 0
    missing_manufacturers: int = 0
    missing_categories: int = 0
    warned_manufacturers: set = field(default_factory=set)


async def map_product(
    record: ProductRecord,
    existing: Optional[Product],
    ctx: ReconcileContext,
    state: ProductMappingState,
) -> Product:
    """Create or update one product together with its parameter associations.

    An unknown manufacturer leaves the reference null with a warning; the product is
    still written.
    """
    _ensure_platform(existing, ctx, "Product")

    category = None
    if record.category_external_id:
        category = state.categories.get(record.category_external_id)
    if category is None:
        category = state.default_category
    if category is None:
        state.missing_categories += 1
        ctx.logger.warning(
            f"[Products] Category {record.category_external_id} of product "
            f"{record.external_id} not found"
        )

    manufacturer = None
    if record.manufacturer_external_id:
        manufacturer = state.manufacturers.get(record.manufacturer_external_id)
        if manufacturer is None:
            state.missing_manufacturers += 1
            if record.manufacturer_external_id not in state.warned_manufacturers:
                state.warned_manufacturers.add(record.manufacturer_external_id)
                ctx.logger.warning(
                    f"[Products] Manufacturer {record.manufacturer_external_id} not found for "
                    f"product {record.external_id}; leaving it empty"
                )

    if existing is None:
        product = Product(
            platform=ctx.platform.value,
            external_id=record.external_id,
            markup_percentage=ctx.config.default_markup_percentage,
            discount=0,
            active=True,
        )
        old_name = None
    else:
        product = existing
        old_name = product.name_en or product.name_bg

    product.workflow_id = record.workflow_id
    product.reference_number = record.reference_number
    product.model = record.model
    product.barcode = record.barcode
    product.category_id = category.id if category is not None else None
    product.manufacturer_id = manufacturer.id if manufacturer is not None else None
    product.name_bg = record.name_bg
    product.name_en = record.name_en
    product.description_bg = record.description_bg
    product.description_en = record.description_en
    product.status = ProductStatus.from_code(record.status_code).value
    product.price_client = record.price_client
    product.price_partner = record.price_partner
    product.price_promo = record.price_promo
    product.price_client_promo = record.price_client_promo
    product.show = record.show
    product.warranty = record.warranty
    product.weight = record.weight
    product.primary_image_url = record.images[0] if record.images else None
    product.additional_images = list(record.images[1:])
    product.calculate_final_price()

    if existing is None or not product.slug or old_name != (record.name_en or record.name_bg):
        exclude_id = existing.id if existing is not None else None

        async def exists(slug: str) -> bool:
            return await crud.product.slug_exists(ctx.db, slug, exclude_id=exclude_id)

        product.slug = await state.slugs.unique_slug(
            record.display_name,
            exists,
            discriminator=record.reference_number,
            fallback=f"product-{record.external_id}",
        )

    ctx.db.add(product)
    await ctx.db.flush()

    if category is not None:
        resolved = await state.resolver.replace_product_parameters(
            ctx.db, product.id, category.id, record.parameters, record.external_id
        )
        state.unmapped_parameters += len(resolved.unmapped)
    return product


# =============================================================================
# Documents
# =============================================================================


async def map_document(
    record: DocumentRecord,
    existing: Optional[ProductDocument],
    ctx: ReconcileContext,
    products: Dict[str, Product],
) -> ProductDocument:
    """Create or update one product document; an unknown product is a mapping error."""
    product = products.get(record.product_external_id)
    if product is None:
        raise EntityProcessingError(
            f"Product {record.product_external_id} not found for document {record.document_url}"
        )

    document = existing or ProductDocument(
        product_id=product.id,
        platform=ctx.platform.value,
        document_url=record.document_url,
    )
    document.comment_bg = record.comment_bg
    document.comment_en = record.comment_en
    return document
