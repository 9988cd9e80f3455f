"""Product, product parameter and product document models."""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from catalogsync.models._base import Base

_CENT = Decimal("0.01")


def _percentage(value: Decimal) -> Decimal:
    return (Decimal(value) / Decimal(100)).quantize(_CENT, rounding=ROUND_HALF_UP)


class Product(Base):
    """A sellable product sourced from one platform."""

    __tablename__ = "products"

    platform: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(500), nullable=False)
    workflow_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    manufacturer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("manufacturers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    name_bg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description_bg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    slug: Mapped[str] = mapped_column(String(300), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="NOT_AVAILABLE")

    price_client: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    price_partner: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    price_promo: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    price_client_promo: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    markup_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("20.00")
    )
    discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    final_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    show: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    warranty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)

    primary_image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    additional_images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("platform", "external_id", name="uq_product_platform_external_id"),
    )

    def calculate_final_price(self) -> Optional[Decimal]:
        """Compute and store ``final_price`` from the client price, markup and discount.

        ``final = price_client * (1 + markup%)``, then ``discount%`` is applied on top
        (negative discounts lower the price). Percentages are rounded half-up to two
        places and the result is quantised to cents. No client price means no final price.
        """
        if self.price_client is None:
            self.final_price = None
            return None

        price = Decimal(self.price_client)
        markup = self.markup_percentage if self.markup_percentage is not None else Decimal(20)
        base = price + price * _percentage(markup)

        discount = Decimal(self.discount or 0)
        if discount != 0:
            base = base + base * _percentage(discount)

        self.final_price = base.quantize(_CENT, rounding=ROUND_HALF_UP)
        return self.final_price


class ProductParameter(Base):
    """Association of a product with one (parameter, option) pair.

    The composite foreign key makes the database reject an option that does not belong
    to the referenced parameter.
    """

    __tablename__ = "product_parameters"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parameter_id: Mapped[int] = mapped_column(Integer, nullable=False)
    parameter_option_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["parameter_id", "parameter_option_id"],
            ["parameter_options.parameter_id", "parameter_options.id"],
            name="fk_product_parameter_option_of_parameter",
            ondelete="CASCADE",
        ),
        UniqueConstraint(
            "product_id", "parameter_id", "parameter_option_id", name="uq_product_parameter_pair"
        ),
    )


class ProductDocument(Base):
    """A document (datasheet, manual) attached to a product."""

    __tablename__ = "product_documents"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    document_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    comment_bg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comment_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("product_id", "document_url", name="uq_product_document_url"),
    )
