"""Declarative base and shared column mixins for the ticker/price tables."""
from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy import Integer
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Declarative base; every table gets an integer surrogate key."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"


class TimestampMixin:
    """created_at/updated_at maintained by the database.

    Only the directory uses it; price_cache carries its own fetch time.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True,
        doc="When the row was first written"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,
        doc="Last metadata refinement"
    )
