"""Unit tests for FinancialDataService and the durable price cache."""
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from depot_quotes.core.exceptions import RateLimitedError, UpstreamUnavailableError
from depot_quotes.repositories.price_cache_repository import PriceCacheRepository
from depot_quotes.repositories.ticker_repository import TickerRepository
from depot_quotes.services.financial_data_service import FinancialDataService
from depot_quotes.services.quote_cache import CacheStore
from depot_quotes.services.quote_service import QuoteService


@pytest.fixture
def financial_data_service(ticker_service, quote_service, session_factory, clock) -> FinancialDataService:
    return FinancialDataService(
        ticker_service=ticker_service,
        quote_service=quote_service,
        session_factory=session_factory,
        ttl_seconds=3600,
        clock=clock,
    )


@pytest.fixture
async def stored_price(db_session, clock):
    """MBG.DE in the directory with a price fetched two hours ago."""
    entry = await TickerRepository(db_session).insert(
        symbol="MBG.DE",
        company_name="Mercedes-Benz Group AG",
        sector="Consumer Cyclical",
        industry="Auto Manufacturers",
        pe_ratio_static=5.2,
    )
    await PriceCacheRepository(db_session).upsert_price(entry.id, 61.5, clock.now - timedelta(hours=2))
    await db_session.commit()
    return entry


class TestFinancialData:
    @pytest.mark.asyncio
    async def test_first_lookup_fetches_and_stores_price(
        self, financial_data_service, quote_provider, db_session, clock
    ) -> None:
        result = await financial_data_service.get_financial_data("Mercedes")

        assert result.symbol == "MBG.DE"
        assert result.company_name == "Mercedes-Benz Group AG"
        assert result.sector == "Consumer Cyclical"
        assert result.price == 150.25
        assert result.change == pytest.approx(1.10)
        assert result.volume == 1000000
        assert result.from_cache is False
        assert result.last_updated == clock.now
        assert quote_provider.calls == ["MBG.DE"]

        entry = await TickerRepository(db_session).find_by_symbol("MBG.DE")
        cached = await PriceCacheRepository(db_session).get_cached_price(entry.id)
        assert cached.price == pytest.approx(150.25)

    @pytest.mark.asyncio
    async def test_fresh_durable_price_skips_provider(
        self, financial_data_service, quote_provider, clock
    ) -> None:
        await financial_data_service.get_financial_data("Mercedes")
        clock.advance(minutes=10)

        result = await financial_data_service.get_financial_data("mercedes")

        assert result.from_cache is True
        assert result.price == pytest.approx(150.25)
        assert result.change == 0.0
        assert result.volume == 0
        assert len(quote_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_stale_durable_price_is_refreshed(
        self, financial_data_service, quote_provider, stored_price, db_session, clock
    ) -> None:
        result = await financial_data_service.get_financial_data("MBG.DE")

        assert result.price == 150.25
        assert result.from_cache is False
        assert result.pe_ratio == pytest.approx(5.2)
        assert quote_provider.calls == ["MBG.DE"]

        cached = await PriceCacheRepository(db_session).get_cached_price(stored_price.id)
        assert cached.last_updated == clock.now

    @pytest.mark.asyncio
    async def test_budget_exhausted_serves_stored_price(
        self, financial_data_service, quote_provider, rate_budget, stored_price
    ) -> None:
        for _ in range(5):
            rate_budget.record()

        result = await financial_data_service.get_financial_data("MBG.DE")

        assert result.price == pytest.approx(61.5)
        assert result.cached_only is True
        assert result.limit_reached is True
        assert result.degraded is True
        assert quote_provider.calls == []

    @pytest.mark.asyncio
    async def test_budget_exhausted_without_stored_price_raises(
        self, financial_data_service, rate_budget
    ) -> None:
        for _ in range(5):
            rate_budget.record()

        with pytest.raises(RateLimitedError):
            await financial_data_service.get_financial_data("Mercedes")

    @pytest.mark.asyncio
    async def test_provider_outage_serves_stored_price(
        self, financial_data_service, quote_provider, stored_price
    ) -> None:
        quote_provider.fetch_quote = AsyncMock(side_effect=UpstreamUnavailableError(None, "Connection error"))

        result = await financial_data_service.get_financial_data("MBG.DE")

        assert result.price == pytest.approx(61.5)
        assert result.degraded is True
        assert result.limit_reached is False

    @pytest.mark.asyncio
    async def test_failed_price_write_still_returns_quote(self, financial_data_service, db_session) -> None:
        await TickerRepository(db_session).insert(symbol="MBG.DE", company_name="Mercedes-Benz Group AG")
        await db_session.commit()

        lost = OperationalError("COMMIT", {}, Exception("connection lost"))
        with patch.object(AsyncSession, "commit", AsyncMock(side_effect=lost)):
            result = await financial_data_service.get_financial_data("MBG.DE")

        assert result.symbol == "MBG.DE"
        assert result.price == 150.25
        assert result.from_cache is False

    @pytest.mark.asyncio
    async def test_memory_cache_hit_is_not_written_back(
        self,
        quote_provider,
        ticker_service,
        rate_budget,
        background_runner,
        session_factory,
        stored_price,
        db_session,
        clock,
    ) -> None:
        cache = CacheStore(ttl_seconds=3600)
        quote_service = QuoteService(
            quote_provider, ticker_service, cache, rate_budget, background_runner, session_factory, clock
        )
        service = FinancialDataService(ticker_service, quote_service, session_factory, ttl_seconds=3600)
        await quote_service.get_quote_for_symbol("MBG.DE", persist=False)

        result = await service.get_financial_data("MBG.DE")

        assert result.from_cache is True
        assert result.price == 150.25
        cached = await PriceCacheRepository(db_session).get_cached_price(stored_price.id)
        assert cached.price == pytest.approx(61.5)

    @pytest.mark.asyncio
    async def test_to_dict(self, financial_data_service) -> None:
        result = await financial_data_service.get_financial_data("Apple")

        data = result.to_dict()
        assert data["symbol"] == "AAPL"
        assert data["industry"] == "Consumer Electronics"
        assert data["description"] is None
