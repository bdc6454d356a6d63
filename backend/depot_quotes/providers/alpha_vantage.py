"""Alpha Vantage quote provider (GLOBAL_QUOTE).

Works against the public endpoint (``apikey`` query parameter) or through
RapidAPI (``x-rapidapi-*`` headers), depending on which key is configured.
"""
import logging
from typing import Any

import httpx

from depot_quotes.core.config import Settings, get_settings
from depot_quotes.core.exceptions import QuoteNotFoundError, UpstreamUnavailableError
from depot_quotes.providers.base import NormalizedQuote, QuoteAdapter, QuoteProviderInterface
from depot_quotes.utils.numbers import parse_localized_int, parse_localized_number

logger = logging.getLogger(__name__)

# Keys Alpha Vantage uses for throttling notices instead of an HTTP 429
THROTTLE_KEYS = ("Note", "Information")


class AlphaVantageAdapter(QuoteAdapter):
    """Maps the ``Global Quote`` payload to NormalizedQuote."""

    def __init__(self, currency: str = "USD"):
        self.currency = currency

    def normalize(self, symbol: str, raw_payload: dict[str, Any]) -> NormalizedQuote:
        if not isinstance(raw_payload, dict):
            raise QuoteNotFoundError(symbol, f"Unexpected payload type for '{symbol}'")

        for key in THROTTLE_KEYS:
            if key in raw_payload:
                raise UpstreamUnavailableError(429, str(raw_payload[key])[:200])

        if "Error Message" in raw_payload:
            raise QuoteNotFoundError(symbol)

        quote = raw_payload.get("Global Quote")
        if not isinstance(quote, dict) or not quote.get("05. price"):
            raise QuoteNotFoundError(symbol)

        try:
            price = parse_localized_number(quote["05. price"])
        except ValueError:
            raise QuoteNotFoundError(symbol, f"Unparseable price for '{symbol}'") from None

        return NormalizedQuote(
            symbol=(quote.get("01. symbol") or symbol).upper(),
            price=price,
            change=parse_localized_number(quote.get("09. change"), strict=False),
            change_percent=parse_localized_number(quote.get("10. change percent"), strict=False),
            volume=parse_localized_int(quote.get("06. volume"), strict=False),
            currency=self.currency,
        )


class AlphaVantageProvider(QuoteProviderInterface):
    """
    Alpha Vantage quote provider.

    One HTTP GET per fetch_quote() call, no retries. Non-2xx responses raise
    UpstreamUnavailableError with the status code; the response body is logged
    but never put into the public error message.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        adapter: QuoteAdapter | None = None,
    ):
        self.settings = settings or get_settings()
        self.adapter = adapter or AlphaVantageAdapter(currency=self.settings.quote_currency)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.settings.quote_request_timeout)

    @property
    def provider_name(self) -> str:
        return "alpha_vantage"

    def _build_request(self, symbol: str) -> tuple[str, dict[str, str], dict[str, str]]:
        """Return (url, params, headers) for a GLOBAL_QUOTE request."""
        params = {"function": "GLOBAL_QUOTE", "symbol": symbol}
        headers: dict[str, str] = {}

        if self.settings.uses_rapidapi:
            url = f"https://{self.settings.rapidapi_host}/query"
            headers["x-rapidapi-host"] = self.settings.rapidapi_host
            headers["x-rapidapi-key"] = self.settings.rapidapi_key or ""
        else:
            if not self.settings.alpha_vantage_api_key:
                raise UpstreamUnavailableError(None, "Alpha Vantage API key not configured")
            url = self.settings.alpha_vantage_base_url
            params["apikey"] = self.settings.alpha_vantage_api_key

        return url, params, headers

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        """Fetch a GLOBAL_QUOTE for a resolved symbol."""
        symbol = symbol.upper().strip()
        url, params, headers = self._build_request(symbol)

        try:
            response = await self.client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Alpha Vantage timeout for {symbol}: {type(e).__name__}")
            raise UpstreamUnavailableError(None, "Request timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"Alpha Vantage transport error for {symbol}: {type(e).__name__}")
            raise UpstreamUnavailableError(None, "Connection error") from e

        if not response.is_success:
            logger.warning(
                f"Alpha Vantage returned {response.status_code} for {symbol}: "
                f"{response.text[:200]}"
            )
            raise UpstreamUnavailableError(response.status_code, response.reason_phrase)

        try:
            payload = response.json()
        except ValueError:
            raise QuoteNotFoundError(symbol, f"Non-JSON payload for '{symbol}'") from None

        quote = self.adapter.normalize(symbol, payload)
        logger.info(f"Fetched quote for {symbol}: price={quote.price}")
        return quote

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
