"""Unit tests for application configuration.

Tests the Settings class in depot_quotes.core.config, ensuring the cache,
budget and provider fields have the expected defaults.
"""
from depot_quotes.core.config import Settings, get_settings


class TestSettingsDefaults:
    """Tests for Settings default values."""

    def test_cache_and_budget_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.quote_cache_ttl_seconds == 3600
        assert settings.quote_cache_max_entries == 1000
        assert settings.quote_rate_limit_per_minute == 5
        assert settings.quote_rate_limit_per_day == 25

    def test_reasoning_service_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.gemini_model == "gemini-2.0-flash"
        assert settings.gemini_max_output_tokens == 200
        assert settings.gemini_temperature == 0.0

    def test_alpha_vantage_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.alpha_vantage_base_url == "https://www.alphavantage.co/query"
        assert settings.rapidapi_host == "alpha-vantage.p.rapidapi.com"
        assert settings.quote_currency == "USD"

    def test_rapidapi_switch(self) -> None:
        assert Settings(_env_file=None, rapidapi_key="key").uses_rapidapi is True
        assert Settings(_env_file=None, rapidapi_key=None).uses_rapidapi is False

    def test_environment_flags(self) -> None:
        assert Settings(_env_file=None, environment="Production").is_production is True
        assert Settings(_env_file=None, environment="development").is_development is True


class TestGetSettings:
    def test_returns_cached_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_test_environment_is_configured(self) -> None:
        settings = get_settings()
        assert settings.environment == "test"
        assert settings.quote_provider == "mock"
