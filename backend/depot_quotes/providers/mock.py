"""Mock quote provider and reasoning service for testing.

Return canned data without hitting external APIs. Useful for unit tests,
integration tests, and development environments without API keys.
"""
import json
import logging

from depot_quotes.core.exceptions import QuoteNotFoundError
from depot_quotes.providers.base import (
    NormalizedQuote,
    QuoteProviderInterface,
    ReasoningServiceInterface,
)

logger = logging.getLogger(__name__)

# name fragment (lowercase) -> directory metadata
KNOWN_NAMES: dict[str, dict[str, str]] = {
    "mercedes": {
        "symbol": "MBG.DE",
        "company_name": "Mercedes-Benz Group AG",
        "sector": "Consumer Cyclical",
        "industry": "Auto Manufacturers",
    },
    "apple": {
        "symbol": "AAPL",
        "company_name": "Apple Inc.",
        "sector": "Technology",
        "industry": "Consumer Electronics",
    },
    "msci world": {
        "symbol": "EUNL.DE",
        "company_name": "iShares Core MSCI World UCITS ETF",
        "sector": "ETF",
        "industry": "Global Equity",
    },
}


class MockQuoteProvider(QuoteProviderInterface):
    """
    Mock quote provider.

    Serves a fixed price per symbol and counts calls, so tests can assert how
    many requests would have reached the network.
    """

    def __init__(self, prices: dict[str, float] | None = None, currency: str = "USD"):
        self.prices = {k.upper(): v for k, v in (prices or {}).items()}
        self.currency = currency
        self.calls: list[str] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        symbol = symbol.upper().strip()
        self.calls.append(symbol)

        if self.prices and symbol not in self.prices:
            raise QuoteNotFoundError(symbol)

        price = self.prices.get(symbol, 150.25)
        return NormalizedQuote(
            symbol=symbol,
            price=price,
            change=1.10,
            change_percent=0.74,
            volume=1000000,
            currency=self.currency,
        )


class MockReasoningService(ReasoningServiceInterface):
    """Answers resolution prompts from KNOWN_NAMES, or with a fixed text."""

    def __init__(self, response_text: str | None = None, known: dict[str, dict[str, str]] | None = None):
        self.response_text = response_text
        self.known = known if known is not None else KNOWN_NAMES
        self.prompts: list[str] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    def _matches(self, prompt: str) -> list[dict[str, str]]:
        lowered = prompt.lower()
        return [dict(meta, input=fragment) for fragment, meta in self.known.items() if fragment in lowered]

    async def generate_json(self, prompt: str, max_output_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        if self.response_text is not None:
            return self.response_text

        matches = self._matches(prompt)
        if '"results"' in prompt:
            return json.dumps({"results": matches})
        if not matches:
            return json.dumps({"symbol": "UNKNOWN"})

        logger.debug(f"Mock resolution matched {matches[0]['symbol']}")
        return json.dumps(matches[0])
