"""Dependency injection for FastAPI endpoints.

Providers, the quote cache, the rate budget and the background runner are
process-scoped singletons: they live exactly as long as the hosting process
and are never shared with other instances. Services are cheap and built per
request from these singletons plus the session factory.
"""
import logging

from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker

from depot_quotes.core.config import get_settings
from depot_quotes.core.database import get_session_factory
from depot_quotes.providers.alpha_vantage import AlphaVantageProvider
from depot_quotes.providers.base import QuoteProviderInterface, ReasoningServiceInterface
from depot_quotes.providers.gemini import GeminiReasoningService
from depot_quotes.providers.mock import MockQuoteProvider, MockReasoningService
from depot_quotes.services.background import BackgroundTaskRunner
from depot_quotes.services.financial_data_service import FinancialDataService
from depot_quotes.services.name_resolver import NameResolver
from depot_quotes.services.quote_cache import CacheStore, RateBudget
from depot_quotes.services.quote_service import QuoteService
from depot_quotes.services.ticker_service import TickerService
from depot_quotes.utils.validation import is_valid_symbol, normalize_symbol

logger = logging.getLogger(__name__)

_quote_provider: QuoteProviderInterface | None = None
_reasoning_service: ReasoningServiceInterface | None = None
_quote_cache: CacheStore | None = None
_rate_budget: RateBudget | None = None
_background_runner: BackgroundTaskRunner | None = None


def get_validated_symbol(symbol: str) -> str:
    """Validate and normalize a ticker symbol from the URL path.

    Raises:
        HTTPException: 400 if symbol format is invalid
    """
    symbol = normalize_symbol(symbol)
    if not is_valid_symbol(symbol):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid symbol format: {symbol}",
        )
    return symbol


def get_quote_provider() -> QuoteProviderInterface:
    """Get the quote provider singleton selected by QUOTE_PROVIDER.

    - "alpha_vantage": AlphaVantageProvider (direct or via RapidAPI)
    - "mock": MockQuoteProvider (testing, fake data)

    Raises:
        ValueError: If the provider type is unknown
    """
    global _quote_provider
    if _quote_provider is None:
        settings = get_settings()
        if settings.quote_provider == "alpha_vantage":
            logger.info("Using AlphaVantageProvider for quotes")
            _quote_provider = AlphaVantageProvider(settings)
        elif settings.quote_provider == "mock":
            logger.info("Using MockQuoteProvider for quotes")
            _quote_provider = MockQuoteProvider(currency=settings.quote_currency)
        else:
            raise ValueError(
                f"Unknown quote provider: {settings.quote_provider}. "
                "Valid options: 'alpha_vantage', 'mock'"
            )
    return _quote_provider


def get_reasoning_service() -> ReasoningServiceInterface:
    """Get the reasoning service singleton selected by REASONING_PROVIDER.

    Raises:
        ValueError: If the provider type is unknown
    """
    global _reasoning_service
    if _reasoning_service is None:
        settings = get_settings()
        if settings.reasoning_provider == "gemini":
            logger.info("Using GeminiReasoningService for name resolution")
            _reasoning_service = GeminiReasoningService(settings)
        elif settings.reasoning_provider == "mock":
            logger.info("Using MockReasoningService for name resolution")
            _reasoning_service = MockReasoningService()
        else:
            raise ValueError(
                f"Unknown reasoning provider: {settings.reasoning_provider}. "
                "Valid options: 'gemini', 'mock'"
            )
    return _reasoning_service


def get_quote_cache() -> CacheStore:
    global _quote_cache
    if _quote_cache is None:
        settings = get_settings()
        _quote_cache = CacheStore(
            ttl_seconds=settings.quote_cache_ttl_seconds,
            max_entries=settings.quote_cache_max_entries,
        )
    return _quote_cache


def get_rate_budget() -> RateBudget:
    global _rate_budget
    if _rate_budget is None:
        settings = get_settings()
        _rate_budget = RateBudget(
            per_minute=settings.quote_rate_limit_per_minute,
            per_day=settings.quote_rate_limit_per_day,
        )
    return _rate_budget


def get_background_runner() -> BackgroundTaskRunner:
    global _background_runner
    if _background_runner is None:
        _background_runner = BackgroundTaskRunner(name="price-persistence")
    return _background_runner


def get_ticker_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    reasoning_service: ReasoningServiceInterface = Depends(get_reasoning_service),
) -> TickerService:
    """Get TickerService with injected dependencies.

    Sessions are created internally for each DB operation, so no connection
    is held while the reasoning service is working.
    """
    resolver = NameResolver(
        reasoning_service,
        max_output_tokens=get_settings().gemini_max_output_tokens,
    )
    return TickerService(session_factory=session_factory, resolver=resolver)


def get_quote_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    ticker_service: TickerService = Depends(get_ticker_service),
    provider: QuoteProviderInterface = Depends(get_quote_provider),
    cache: CacheStore = Depends(get_quote_cache),
    budget: RateBudget = Depends(get_rate_budget),
    runner: BackgroundTaskRunner = Depends(get_background_runner),
) -> QuoteService:
    return QuoteService(
        provider=provider,
        ticker_service=ticker_service,
        cache=cache,
        budget=budget,
        runner=runner,
        session_factory=session_factory,
    )


def get_financial_data_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    ticker_service: TickerService = Depends(get_ticker_service),
    quote_service: QuoteService = Depends(get_quote_service),
) -> FinancialDataService:
    settings = get_settings()
    return FinancialDataService(
        ticker_service=ticker_service,
        quote_service=quote_service,
        session_factory=session_factory,
        ttl_seconds=settings.quote_cache_ttl_seconds,
        currency=settings.quote_currency,
    )


async def cleanup_dependencies() -> None:
    """Drain background writes and close provider clients.

    Called by the FastAPI lifespan manager during shutdown.
    """
    global _quote_provider, _reasoning_service, _quote_cache, _rate_budget, _background_runner

    if _background_runner is not None:
        await _background_runner.drain(timeout=10.0)

    for client in (_quote_provider, _reasoning_service):
        if client is None:
            continue
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"Error closing {client.provider_name} client: {e}")

    _quote_provider = None
    _reasoning_service = None
    _quote_cache = None
    _rate_budget = None
    _background_runner = None
