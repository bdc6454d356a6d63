"""Shared pytest fixtures for testing infrastructure.

CRITICAL: Environment variables MUST be set before ANY imports.
"""
import os
import tempfile

# ===============================================================================
# CRITICAL: Set test environment variables FIRST, before ANY other imports!
# This ensures Settings classes pick up the test database configuration.
# ===============================================================================
_TEST_DB_DIR = tempfile.mkdtemp(prefix="depot_quotes_test_")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'app.db')}"
TEST_JWT_SECRET = "test-secret-not-for-production"

# Override environment variables BEFORE importing any app code
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["DATABASE_ECHO"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["QUOTE_PROVIDER"] = "mock"
os.environ["REASONING_PROVIDER"] = "mock"
os.environ["AUTH_JWT_SECRET"] = TEST_JWT_SECRET

# Now import everything else AFTER environment is configured
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport
from httpx import AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine

from depot_quotes.core.auth import create_access_token
from depot_quotes.core.config import Settings
from depot_quotes.core.config import get_settings
from depot_quotes.core.database import get_session_factory
from depot_quotes.core.deps import get_background_runner
from depot_quotes.core.deps import get_quote_cache
from depot_quotes.core.deps import get_quote_provider
from depot_quotes.core.deps import get_rate_budget
from depot_quotes.core.deps import get_reasoning_service
from depot_quotes.models import Base
from depot_quotes.providers.mock import MockQuoteProvider
from depot_quotes.providers.mock import MockReasoningService
from depot_quotes.services.background import BackgroundTaskRunner
from depot_quotes.services.name_resolver import NameResolver
from depot_quotes.services.quote_cache import CacheStore
from depot_quotes.services.quote_cache import RateBudget
from depot_quotes.services.quote_service import QuoteService
from depot_quotes.services.ticker_service import TickerService
from depot_quotes.utils.structured_logging import configure_structured_logging
from tests.utils.clock import FakeClock


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings with test database configuration.

    Returns:
        Settings: Test configuration
    """
    return Settings(
        environment="test",
        database_url=TEST_DATABASE_URL,
        database_echo=False,
        log_level="WARNING",
        debug=True,
        quote_provider="mock",
        reasoning_provider="mock",
        auth_jwt_secret=TEST_JWT_SECRET,
    )


@pytest.fixture(scope="session", autouse=True)
def configure_logging(test_settings: Settings):
    """Configure structured logging for tests."""
    configure_structured_logging(log_level=test_settings.log_level)


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Per-test SQLite database file with all tables created.

    A file (not :memory:) so that concurrent tests can open separate
    connections. The two event hooks let pysqlite honour SAVEPOINT, which
    BaseRepository.create() relies on.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory on the per-test database, configured like production."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quote_provider() -> MockQuoteProvider:
    return MockQuoteProvider()


@pytest.fixture
def reasoning_service() -> MockReasoningService:
    return MockReasoningService()


@pytest.fixture
def quote_cache(test_settings: Settings) -> CacheStore:
    return CacheStore(ttl_seconds=test_settings.quote_cache_ttl_seconds, max_entries=100)


@pytest.fixture
def rate_budget(test_settings: Settings, clock: FakeClock) -> RateBudget:
    return RateBudget(
        per_minute=test_settings.quote_rate_limit_per_minute,
        per_day=test_settings.quote_rate_limit_per_day,
        clock=clock,
    )


@pytest_asyncio.fixture
async def background_runner() -> AsyncGenerator[BackgroundTaskRunner, None]:
    runner = BackgroundTaskRunner(name="test")
    yield runner
    await runner.drain(timeout=5.0)


@pytest.fixture
def ticker_service(session_factory, reasoning_service) -> TickerService:
    return TickerService(session_factory=session_factory, resolver=NameResolver(reasoning_service))


@pytest.fixture
def quote_service(
    quote_provider, ticker_service, quote_cache, rate_budget, background_runner, session_factory, clock
) -> QuoteService:
    return QuoteService(
        provider=quote_provider,
        ticker_service=ticker_service,
        cache=quote_cache,
        budget=rate_budget,
        runner=background_runner,
        session_factory=session_factory,
        clock=clock,
    )


@pytest.fixture
def app(
    test_settings,
    session_factory,
    quote_provider,
    reasoning_service,
    quote_cache,
    rate_budget,
    background_runner,
):
    """Create FastAPI test application with dependency overrides.

    Every process-scoped singleton is replaced by the per-test instance so
    tests never share cache or budget state.
    """
    from depot_quotes.main import app as main_app

    main_app.dependency_overrides[get_settings] = lambda: test_settings
    main_app.dependency_overrides[get_session_factory] = lambda: session_factory
    main_app.dependency_overrides[get_quote_provider] = lambda: quote_provider
    main_app.dependency_overrides[get_reasoning_service] = lambda: reasoning_service
    main_app.dependency_overrides[get_quote_cache] = lambda: quote_cache
    main_app.dependency_overrides[get_rate_budget] = lambda: rate_budget
    main_app.dependency_overrides[get_background_runner] = lambda: background_runner

    yield main_app

    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async test client talking to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture
def auth_headers(test_settings: Settings) -> dict[str, str]:
    token = create_access_token("user-123", settings=test_settings)
    return {"Authorization": f"Bearer {token}"}


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
