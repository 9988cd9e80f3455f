"""Category model."""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from catalogsync.models._base import Base


class Category(Base):
    """A node of the storefront category forest.

    ``platform`` is set when the row is first created from a source and never changes
    afterwards. The parent link is assigned by the hierarchy pass, after every node of
    the run exists.
    """

    __tablename__ = "categories"

    platform: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(500), nullable=False)
    name_bg: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    name_en: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    category_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    __table_args__ = (
        UniqueConstraint("platform", "external_id", name="uq_category_platform_external_id"),
    )

    @property
    def display_name(self) -> str:
        """Name used for slugs and logs: English first, Bulgarian otherwise."""
        return self.name_en or self.name_bg or ""
