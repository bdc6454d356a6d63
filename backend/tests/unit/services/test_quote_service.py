"""Unit tests for the cache-first quote service and its call budget."""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from depot_quotes.core.exceptions import (
    InvalidSymbolError,
    QuoteNotFoundError,
    RateLimitedError,
    UnresolvableNameError,
    UpstreamUnavailableError,
)
from depot_quotes.models import PriceCache, TickerMapping
from depot_quotes.providers.base import NormalizedQuote
from depot_quotes.providers.mock import MockQuoteProvider
from depot_quotes.repositories.base import DatabaseError
from depot_quotes.repositories.price_cache_repository import PriceCacheRepository
from depot_quotes.services.quote_cache import CacheState, CacheStore, RateBudget
from depot_quotes.services.quote_service import QuoteService

DISTINCT_SYMBOLS = ["AAPL", "MSFT", "GOOG", "AMZN", "NVDA"]


class TestQuoteLookup:
    """Live fetch and cache hits."""

    @pytest.mark.asyncio
    async def test_first_lookup_fetches_from_provider(self, quote_service, quote_provider, clock) -> None:
        result = await quote_service.get_quote("AAPL")

        assert result.to_dict() == {
            "symbol": "AAPL",
            "price": 150.25,
            "change": 1.10,
            "change_percent": 0.74,
            "volume": 1000000,
            "currency": "USD",
            "from_cache": False,
            "cached_only": False,
            "limit_reached": False,
            "degraded": False,
            "fetched_at": clock.now,
        }
        assert quote_provider.calls == ["AAPL"]

    @pytest.mark.asyncio
    async def test_repeat_lookup_within_ttl_is_served_from_cache(
        self, quote_service, quote_provider, rate_budget, clock
    ) -> None:
        first = await quote_service.get_quote("AAPL")
        clock.advance(minutes=30)
        second = await quote_service.get_quote("AAPL")

        assert second.from_cache is True
        assert (second.symbol, second.price, second.change, second.volume) == (
            first.symbol,
            first.price,
            first.change,
            first.volume,
        )
        assert quote_provider.calls == ["AAPL"]
        assert rate_budget.day_count() == 1

    @pytest.mark.asyncio
    async def test_ttl_boundary(self, quote_service, quote_provider, clock) -> None:
        await quote_service.get_quote("AAPL")

        clock.advance(seconds=3599)
        assert (await quote_service.get_quote("AAPL")).from_cache is True
        assert len(quote_provider.calls) == 1

        clock.advance(seconds=1)
        assert (await quote_service.get_quote("AAPL")).from_cache is False
        assert len(quote_provider.calls) == 2

    @pytest.mark.asyncio
    async def test_name_is_resolved_before_fetch(self, quote_service, quote_provider, reasoning_service) -> None:
        result = await quote_service.get_quote("Mercedes")

        assert result.symbol == "MBG.DE"
        assert quote_provider.calls == ["MBG.DE"]
        assert len(reasoning_service.prompts) == 1

    @pytest.mark.asyncio
    async def test_empty_input_is_rejected(self, quote_service, quote_provider) -> None:
        with pytest.raises(InvalidSymbolError):
            await quote_service.get_quote("   ")

        assert quote_provider.calls == []

    @pytest.mark.asyncio
    async def test_unresolvable_name_costs_no_budget(self, quote_service, quote_provider, rate_budget) -> None:
        with pytest.raises(UnresolvableNameError):
            await quote_service.get_quote("Qzxv Capital Nonsense Inc")

        assert quote_provider.calls == []
        assert rate_budget.day_count() == 0


class TestRateGovernor:
    """Budget ceilings and degraded responses."""

    @pytest.mark.asyncio
    async def test_sixth_distinct_symbol_in_a_minute_is_rate_limited(
        self, quote_service, quote_provider, clock
    ) -> None:
        for symbol in DISTINCT_SYMBOLS:
            await quote_service.get_quote(symbol)

        with pytest.raises(RateLimitedError) as exc_info:
            await quote_service.get_quote("TSLA")

        assert len(quote_provider.calls) == 5
        assert exc_info.value.symbol == "TSLA"
        assert exc_info.value.reset_at == clock.now + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_cached_symbols_stay_available_at_limit(self, quote_service, quote_provider) -> None:
        for symbol in DISTINCT_SYMBOLS:
            await quote_service.get_quote(symbol)

        result = await quote_service.get_quote("AAPL")

        assert result.from_cache is True
        assert result.limit_reached is False
        assert len(quote_provider.calls) == 5

    @pytest.mark.asyncio
    async def test_stale_entry_over_budget_is_served_without_call(
        self, quote_provider, ticker_service, background_runner, clock
    ) -> None:
        cache = CacheStore(ttl_seconds=3600)
        budget = RateBudget(per_minute=25, per_day=100, clock=clock)
        service = QuoteService(quote_provider, ticker_service, cache, budget, background_runner, clock=clock)
        stale = NormalizedQuote("EUNL", 98.5, 0.3, 0.31, 4200, "USD")
        cache.set("EUNL", stale, clock.now - timedelta(hours=20))
        for _ in range(25):
            budget.record()

        result = await service.get_quote("EUNL")

        assert result.price == 98.5
        assert result.cached_only is True
        assert result.limit_reached is True
        assert result.degraded is True
        assert result.fetched_at == clock.now - timedelta(hours=20)
        assert quote_provider.calls == []

    @pytest.mark.asyncio
    async def test_budget_recovers_after_window(self, quote_service, quote_provider, clock) -> None:
        for symbol in DISTINCT_SYMBOLS:
            await quote_service.get_quote(symbol)
        clock.advance(seconds=61)

        result = await quote_service.get_quote("TSLA")

        assert result.symbol == "TSLA"
        assert len(quote_provider.calls) == 6

    def test_classify(self, quote_service, quote_cache, rate_budget, clock) -> None:
        entry = quote_cache.set("AAPL", NormalizedQuote("AAPL", 1.0, 0.0, 0.0, 0, "USD"), clock.now)

        assert quote_service.classify(entry, clock.now) == CacheState.FRESH
        later = clock.now + timedelta(hours=2)
        assert quote_service.classify(entry, later) == CacheState.STALE_WITHIN_BUDGET
        assert quote_service.classify(None, later) == CacheState.STALE_WITHIN_BUDGET

        for _ in range(5):
            rate_budget.record(later)
        assert quote_service.classify(entry, later) == CacheState.STALE_OVER_BUDGET
        assert quote_service.classify(None, later) == CacheState.EMPTY_OVER_BUDGET


class TestUpstreamFailures:
    @pytest.mark.asyncio
    async def test_failed_refresh_falls_back_to_stale_entry(
        self, quote_service, quote_provider, rate_budget, clock
    ) -> None:
        await quote_service.get_quote("AAPL")
        clock.advance(hours=2)
        quote_provider.fetch_quote = AsyncMock(side_effect=UpstreamUnavailableError(503, "Service Unavailable"))

        result = await quote_service.get_quote("AAPL")

        assert result.price == 150.25
        assert result.cached_only is True
        assert result.degraded is True
        assert result.limit_reached is False
        # The failed attempt still counts against the budget
        assert rate_budget.day_count() == 2

    @pytest.mark.asyncio
    async def test_failure_without_cache_propagates(self, quote_service, rate_budget) -> None:
        quote_service.provider = MockQuoteProvider(prices={"MSFT": 400.0})

        with pytest.raises(QuoteNotFoundError):
            await quote_service.get_quote("AAPL")

        assert rate_budget.day_count() == 1

    @pytest.mark.asyncio
    async def test_batch_lookup_returns_none_for_failures(self, quote_service, quote_provider) -> None:
        results = await quote_service.get_quotes(["AAPL", "Qzxv Capital Nonsense Inc", "AAPL"])

        assert results[0] is not None and results[0].from_cache is False
        assert results[1] is None
        assert results[2] is not None and results[2].from_cache is True
        assert quote_provider.calls == ["AAPL"]


class TestPricePersistence:
    """Background write of fetched prices."""

    @pytest.mark.asyncio
    async def test_fetched_price_is_persisted_for_directory_entries(
        self, quote_service, background_runner, db_session, clock
    ) -> None:
        await quote_service.get_quote("Mercedes")
        await background_runner.drain()

        ticker = (
            await db_session.execute(select(TickerMapping).where(TickerMapping.symbol == "MBG.DE"))
        ).scalar_one()
        cached = await PriceCacheRepository(db_session).get_cached_price(ticker.id)
        assert cached is not None
        assert cached.price == pytest.approx(150.25)
        assert cached.last_updated == clock.now

    @pytest.mark.asyncio
    async def test_symbol_without_directory_entry_is_not_persisted(
        self, quote_service, background_runner, db_session
    ) -> None:
        await quote_service.get_quote("AAPL")
        await background_runner.drain()

        rows = (await db_session.execute(select(PriceCache))).scalars().all()
        assert rows == []
        assert background_runner.failures == 0

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_affect_result(
        self, quote_service, background_runner, monkeypatch
    ) -> None:
        monkeypatch.setattr(
            PriceCacheRepository, "upsert_price", AsyncMock(side_effect=DatabaseError("disk full"))
        )

        result = await quote_service.get_quote("Mercedes")
        await background_runner.drain()

        assert result.price == 150.25
        assert background_runner.failures == 1

    @pytest.mark.asyncio
    async def test_budget_snapshot(self, quote_service) -> None:
        await quote_service.get_quote("AAPL")

        snapshot = quote_service.budget_snapshot()

        assert snapshot["minute_count"] == 1
        assert snapshot["day_count"] == 1
