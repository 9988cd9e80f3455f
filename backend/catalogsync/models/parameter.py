"""Parameter and parameter option models."""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from catalogsync.models._base import Base


class Parameter(Base):
    """A product attribute (e.g. "RAM") defined within one category."""

    __tablename__ = "parameters"

    platform: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(500), nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name_bg: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    name_en: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "category_id", "platform", "external_id", name="uq_parameter_category_external_id"
        ),
    )


class ParameterOption(Base):
    """One discrete value of a parameter (e.g. "16GB").

    Names are ``Text``: some vendor values run past 1,500 characters.
    """

    __tablename__ = "parameter_options"

    parameter_id: Mapped[int] = mapped_column(
        ForeignKey("parameters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name_bg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "parameter_id", "platform", "external_id", name="uq_option_parameter_external_id"
        ),
        # Target of the composite key on product_parameters
        UniqueConstraint("parameter_id", "id", name="uq_option_parameter_id_id"),
    )
