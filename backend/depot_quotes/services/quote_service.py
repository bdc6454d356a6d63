"""Quote lookups behind the in-memory cache and the upstream call budget.

Per lookup key the governor is in one of four states:

- FRESH: cached and younger than the TTL, served without a network call
- STALE_WITHIN_BUDGET: budget left, the provider is called; a failed call
  falls back to the stale entry (flagged degraded) when there is one
- STALE_OVER_BUDGET: budget exhausted, the stale entry is served as is
- EMPTY_OVER_BUDGET: budget exhausted and nothing cached, RateLimitedError

Every call that reaches the provider counts against the budget, successful
or not. Cache hits never do.
"""
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from depot_quotes.core.exceptions import InvalidSymbolError, QuoteServiceError, RateLimitedError
from depot_quotes.providers.base import NormalizedQuote, QuoteProviderInterface
from depot_quotes.repositories.price_cache_repository import PriceCacheRepository
from depot_quotes.repositories.ticker_repository import TickerRepository
from depot_quotes.services.background import BackgroundTaskRunner
from depot_quotes.services.quote_cache import CacheEntry, CacheState, CacheStore, RateBudget
from depot_quotes.services.ticker_service import TickerService
from depot_quotes.utils.validation import is_valid_symbol

logger = logging.getLogger(__name__)


@dataclass
class QuoteResult:
    """NormalizedQuote plus cache/degrade annotations."""

    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    currency: str
    from_cache: bool = False
    cached_only: bool = False
    limit_reached: bool = False
    degraded: bool = False
    fetched_at: datetime | None = None

    @classmethod
    def from_quote(cls, quote: NormalizedQuote, fetched_at: datetime, **flags: bool) -> "QuoteResult":
        return cls(
            symbol=quote.symbol,
            price=quote.price,
            change=quote.change,
            change_percent=quote.change_percent,
            volume=quote.volume,
            currency=quote.currency,
            fetched_at=fetched_at,
            **flags,
        )

    @classmethod
    def from_entry(cls, entry: CacheEntry, **flags: bool) -> "QuoteResult":
        return cls.from_quote(entry.data, entry.fetched_at, from_cache=True, **flags)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class QuoteService:
    """
    Cache-first quote service.

    Flow:
    1. Resolve input to a provider symbol (names go through TickerService)
    2. Serve a fresh in-memory entry if there is one
    3. Otherwise check the budget, call the provider, cache the result
    4. Persist the price in the background (best effort)
    """

    def __init__(
        self,
        provider: QuoteProviderInterface,
        ticker_service: TickerService,
        cache: CacheStore,
        budget: RateBudget,
        runner: BackgroundTaskRunner,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.provider = provider
        self.ticker_service = ticker_service
        self.cache = cache
        self.budget = budget
        self.runner = runner
        self.session_factory = session_factory
        self.clock = clock or budget.clock

    async def get_quote(self, symbol_or_name: str, explicit_symbol: bool = False) -> QuoteResult:
        """
        Quote for a ticker, ISIN or company name.

        ``explicit_symbol`` marks input from a symbol field, where lowercase
        tickers are accepted without resolution.

        Raises:
            InvalidSymbolError: If the input is empty or resolves to a malformed symbol
            UnresolvableNameError: If a name cannot be mapped to a ticker
            RateLimitedError: If the budget is exhausted and nothing is cached
            QuoteNotFoundError: If the provider has no data and nothing is cached
            UpstreamUnavailableError: If the provider fails and nothing is cached
        """
        if not symbol_or_name or not symbol_or_name.strip():
            raise InvalidSymbolError(symbol_or_name or "")

        symbol = await self.ticker_service.resolve_symbol(symbol_or_name, explicit_symbol=explicit_symbol)
        if not is_valid_symbol(symbol):
            raise InvalidSymbolError(symbol)
        return await self.get_quote_for_symbol(symbol)

    def classify(self, entry: CacheEntry | None, now: datetime) -> CacheState:
        if entry is not None and self.cache.is_fresh(entry, now):
            return CacheState.FRESH
        if not self.budget.at_limit(now):
            return CacheState.STALE_WITHIN_BUDGET
        if entry is not None:
            return CacheState.STALE_OVER_BUDGET
        return CacheState.EMPTY_OVER_BUDGET

    async def get_quote_for_symbol(self, symbol: str, persist: bool = True) -> QuoteResult:
        """
        Quote for an already resolved provider symbol.

        Args:
            symbol: Provider-native ticker
            persist: Schedule a background write of a freshly fetched price
        """
        symbol = symbol.upper().strip()
        now = self.clock()
        entry = self.cache.get(symbol)
        state = self.classify(entry, now)

        if state == CacheState.FRESH:
            logger.debug(f"Cache hit for {symbol} (age={entry.age_seconds(now):.0f}s)")
            return QuoteResult.from_entry(entry)

        if state == CacheState.STALE_OVER_BUDGET:
            logger.info(
                f"Budget exhausted, serving stale {symbol} "
                f"(minute={self.budget.minute_count(now)}, day={self.budget.day_count(now)})"
            )
            return QuoteResult.from_entry(entry, cached_only=True, limit_reached=True, degraded=True)

        if state == CacheState.EMPTY_OVER_BUDGET:
            reset_at = self.budget.reset_time(now)
            logger.warning(f"Budget exhausted and no cached quote for {symbol}, reset at {reset_at}")
            raise RateLimitedError(symbol, reset_at)

        self.budget.record(now)
        logger.info(
            f"Fetching {symbol} from {self.provider.provider_name} "
            f"(minute={self.budget.minute_count(now)}, day={self.budget.day_count(now)})"
        )
        try:
            quote = await self.provider.fetch_quote(symbol)
        except QuoteServiceError as e:
            if entry is None:
                raise
            logger.warning(f"Live fetch for {symbol} failed, serving stale quote: {e}")
            return QuoteResult.from_entry(entry, cached_only=True, degraded=True)

        fetched_at = self.clock()
        self.cache.set(symbol, quote, fetched_at)
        if persist:
            self.schedule_price_persist(symbol, quote.price, fetched_at)
        return QuoteResult.from_quote(quote, fetched_at)

    async def get_quotes(self, inputs: list[str]) -> list[QuoteResult | None]:
        """Look up several quotes one after the other.

        Lookups run sequentially because they share one budget. A failed
        lookup yields None in its position instead of failing the batch.
        """
        results: list[QuoteResult | None] = []
        for value in inputs:
            try:
                results.append(await self.get_quote(value))
            except QuoteServiceError as e:
                logger.warning(f"Quote lookup for '{value}' failed: {e}")
                results.append(None)
        return results

    def schedule_price_persist(self, symbol: str, price: float, fetched_at: datetime) -> None:
        if self.session_factory is None:
            return
        self.runner.spawn(self._persist_price(symbol, price, fetched_at), name=f"persist-price-{symbol}")

    async def _persist_price(self, symbol: str, price: float, fetched_at: datetime) -> None:
        async with self.session_factory() as session:
            ticker = await TickerRepository(session).find_by_symbol(symbol)
            if ticker is None:
                # Quoted directly by symbol, never resolved into the directory
                logger.debug(f"No directory row for {symbol}, price not persisted")
                return
            await PriceCacheRepository(session).upsert_price(ticker.id, price, fetched_at)
            await session.commit()
        logger.debug(f"Persisted price {price} for {symbol}")

    def budget_snapshot(self) -> dict[str, Any]:
        return self.budget.snapshot()
