"""Financial data lookups: directory metadata joined with the current price.

Freshness here is judged against the durable price_cache table, not the
in-memory cache, because a new process starts with an empty memory tier.
"""
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from depot_quotes.core.exceptions import RateLimitedError, UpstreamUnavailableError
from depot_quotes.models.ticker import TickerMapping
from depot_quotes.repositories.base import DatabaseError
from depot_quotes.repositories.price_cache_repository import CachedPrice, PriceCacheRepository
from depot_quotes.services.quote_service import QuoteResult, QuoteService
from depot_quotes.services.ticker_service import TickerService

logger = logging.getLogger(__name__)


@dataclass
class FinancialDataResult:
    """Directory entry enriched with price data."""

    symbol: str
    company_name: str
    sector: str | None
    industry: str | None
    description: str | None
    pe_ratio: float | None
    price: float
    currency: str
    change: float
    change_percent: float
    volume: int
    from_cache: bool
    last_updated: datetime | None
    cached_only: bool = False
    limit_reached: bool = False
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _entry_fields(entry: TickerMapping) -> dict[str, Any]:
    return {
        "symbol": entry.symbol,
        "company_name": entry.company_name,
        "sector": entry.sector,
        "industry": entry.industry,
        "description": entry.description_static,
        "pe_ratio": float(entry.pe_ratio_static) if entry.pe_ratio_static is not None else None,
    }


class FinancialDataService:
    """
    Resolve → check durable price → fetch through the governor → persist.

    A durable price younger than the TTL is returned as is. Only the price
    is durable, so change and volume are zero in that case.
    """

    def __init__(
        self,
        ticker_service: TickerService,
        quote_service: QuoteService,
        session_factory: async_sessionmaker[AsyncSession],
        ttl_seconds: int,
        currency: str = "USD",
        clock: Callable[[], datetime] | None = None,
    ):
        self.ticker_service = ticker_service
        self.quote_service = quote_service
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds
        self.currency = currency
        self.clock = clock or quote_service.clock

    def _from_cached_price(self, entry: TickerMapping, cached: CachedPrice, **flags: bool) -> FinancialDataResult:
        return FinancialDataResult(
            **_entry_fields(entry),
            price=cached.price,
            currency=self.currency,
            change=0.0,
            change_percent=0.0,
            volume=0,
            from_cache=True,
            last_updated=cached.last_updated,
            **flags,
        )

    def _from_quote(self, entry: TickerMapping, quote: QuoteResult) -> FinancialDataResult:
        return FinancialDataResult(
            **_entry_fields(entry),
            price=quote.price,
            currency=quote.currency,
            change=quote.change,
            change_percent=quote.change_percent,
            volume=quote.volume,
            from_cache=quote.from_cache,
            last_updated=quote.fetched_at,
            cached_only=quote.cached_only,
            limit_reached=quote.limit_reached,
            degraded=quote.degraded,
        )

    async def _read_cached_price(self, ticker_id: int) -> CachedPrice | None:
        async with self.session_factory() as session:
            return await PriceCacheRepository(session).get_cached_price(ticker_id)

    async def _store_price(self, ticker_id: int, price: float, fetched_at: datetime | None) -> None:
        try:
            async with self.session_factory() as session:
                await PriceCacheRepository(session).upsert_price(ticker_id, price, fetched_at)
                await session.commit()
        except (DatabaseError, SQLAlchemyError) as e:
            logger.error(f"Failed to persist price for ticker_id={ticker_id}: {e}")

    async def get_financial_data(self, query: str) -> FinancialDataResult:
        """
        Financial data for a symbol, ISIN or company name.

        Raises:
            InvalidSymbolError: If the query is empty
            UnresolvableNameError: If the name cannot be mapped to a ticker
            RateLimitedError: If no price is available within the budget
            QuoteNotFoundError: If the provider has no data for the ticker
            UpstreamUnavailableError: If the provider fails and nothing is stored
        """
        entry = await self.ticker_service.resolve_entry(query)
        cached = await self._read_cached_price(entry.id)
        now = self.clock()

        if cached is not None and cached.age_seconds(now) < self.ttl_seconds:
            logger.debug(f"Durable price hit for {entry.symbol} (age={cached.age_seconds(now):.0f}s)")
            return self._from_cached_price(entry, cached)

        try:
            quote = await self.quote_service.get_quote_for_symbol(entry.symbol, persist=False)
        except (RateLimitedError, UpstreamUnavailableError) as e:
            if cached is None:
                raise
            logger.warning(f"Serving stored price for {entry.symbol}: {e}")
            return self._from_cached_price(
                entry,
                cached,
                cached_only=True,
                limit_reached=isinstance(e, RateLimitedError),
                degraded=True,
            )

        if not quote.from_cache:
            await self._store_price(entry.id, quote.price, quote.fetched_at)
        return self._from_quote(entry, quote)
