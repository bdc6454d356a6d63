"""Repository for the durable per-ticker price cache."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from depot_quotes.models.price_cache import PriceCache
from depot_quotes.repositories.base import BaseRepository
from depot_quotes.repositories.base import DatabaseError

logger = logging.getLogger(__name__)


@dataclass
class CachedPrice:
    """Last known price and when it was fetched."""

    price: float
    last_updated: datetime

    def age_seconds(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.last_updated).total_seconds()


class PriceCacheRepository(BaseRepository[PriceCache]):
    """Upsert-only access to price_cache (one row per ticker)."""

    def __init__(self, session: AsyncSession):
        super().__init__(PriceCache, session)

    async def get_cached_price(self, ticker_id: int) -> CachedPrice | None:
        """Get the last known price for a ticker.

        Rows whose price is still NULL count as missing.

        Args:
            ticker_id: TickerMapping primary key

        Returns:
            CachedPrice or None
        """
        try:
            result = await self.session.execute(
                select(PriceCache.price, PriceCache.last_updated).where(
                    PriceCache.ticker_id == ticker_id
                )
            )
            row = result.one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to read cached price for ticker_id={ticker_id}: {e}")
            raise DatabaseError(f"Database error reading price cache: {str(e)}")

        if row is None or row.price is None:
            return None

        last_updated = row.last_updated
        # SQLite returns naive datetimes even for timezone-aware columns
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)
        return CachedPrice(price=float(row.price), last_updated=last_updated)

    async def upsert_price(
        self,
        ticker_id: int,
        price: float | Decimal,
        timestamp: datetime | None = None,
    ) -> None:
        """Insert or overwrite the price row for a ticker.

        Idempotent on ticker_id: INSERT ... ON CONFLICT (ticker_id) DO UPDATE.

        Args:
            ticker_id: TickerMapping primary key
            price: Price to store
            timestamp: Fetch time (defaults to now, UTC)

        Raises:
            DatabaseError: If the database operation fails
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        try:
            stmt = self._insert().values(
                ticker_id=ticker_id,
                price=Decimal(str(price)),
                last_updated=timestamp,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["ticker_id"],
                set_={
                    "price": stmt.excluded.price,
                    "last_updated": stmt.excluded.last_updated,
                },
            )
            await self.session.execute(stmt)
            self.logger.debug(f"Upserted price {price} for ticker_id={ticker_id}")
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to upsert price for ticker_id={ticker_id}: {e}")
            raise DatabaseError(f"Database error upserting price: {str(e)}")
