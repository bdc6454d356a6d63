"""Ticker directory model.

Global reference table mapping company names to canonical exchange symbols.
Rows are shared by all users and never deleted; updates only refine metadata.
"""
from decimal import Decimal

from sqlalchemy import Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from depot_quotes.models.base import Base, TimestampMixin


class TickerMapping(TimestampMixin, Base):
    """Canonical identity of a tradable security."""

    __tablename__ = "ticker_mapping"

    symbol: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True,
        doc="Uppercase exchange symbol (e.g., 'AAPL', 'MBG.DE')"
    )
    company_name: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True,
        doc="Official company or fund name"
    )
    isin: Mapped[str | None] = mapped_column(
        String(12), nullable=True, unique=True, index=True,
        doc="ISIN the entry was resolved from, when the input was one"
    )
    sector: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
        doc="Sector in English (e.g., 'Consumer Cyclical')"
    )
    industry: Mapped[str | None] = mapped_column(
        String(150), nullable=True,
        doc="Industry in English (e.g., 'Auto Manufacturers')"
    )
    description_static: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        doc="Static company description"
    )
    pe_ratio_static: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 4), nullable=True,
        doc="Static price/earnings ratio"
    )
    competitors: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        doc="Free-text list of competitors"
    )

    def __repr__(self) -> str:
        return f"<TickerMapping(id={self.id}, symbol={self.symbol!r})>"
