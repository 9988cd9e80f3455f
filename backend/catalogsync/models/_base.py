"""Base class for SQLAlchemy models."""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from catalogsync.core.datetime_utils import utc_now_naive


class Base(DeclarativeBase):
    """Base class for all catalog models.

    Every table gets an integer primary key and naive UTC ``created_at`` /
    ``modified_at`` timestamps.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, nullable=False)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False
    )

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Default table name: the lowercased class name."""
        return cls.__name__.lower()
