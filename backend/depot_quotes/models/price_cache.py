"""Durable last-known price per ticker.

This is the cross-process freshness authority: every process instance may
start with an empty in-memory cache, but all of them read the same row here.
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from depot_quotes.models.base import Base


class PriceCache(Base):
    """Last known price for a TickerMapping (one row per ticker)."""

    __tablename__ = "price_cache"

    ticker_id: Mapped[int] = mapped_column(
        ForeignKey("ticker_mapping.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
        doc="Ticker this price belongs to"
    )
    price: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 6), nullable=True,
        doc="Last fetched price (null until the first fetch)"
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
        doc="When the price was fetched from the provider"
    )

    def __repr__(self) -> str:
        return f"<PriceCache(ticker_id={self.ticker_id}, price={self.price})>"
