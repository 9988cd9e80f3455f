"""Manufacturer model."""

from typing import Optional

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from catalogsync.models._base import Base


class Manufacturer(Base):
    """A product manufacturer with its informational and EU-representative contacts."""

    __tablename__ = "manufacturers"

    platform: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(500), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    information_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    information_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    information_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    eu_representative_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    eu_representative_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    eu_representative_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("platform", "external_id", name="uq_manufacturer_platform_external_id"),
    )
