"""Base provider interfaces and data models.

Two kinds of upstream services are abstracted here:
- quote providers, which return prices for an already resolved ticker
- reasoning services, which map free-text names to tickers

Provider-specific payload field names stay inside each provider's adapter.
"""
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class NormalizedQuote:
    """Provider-independent price quote."""

    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ResolvedTicker:
    """Result of resolving a company/fund name to a ticker."""

    symbol: str
    company_name: str
    sector: str | None = None
    industry: str | None = None
    description: str | None = None
    competitors: str | None = None
    source_name: str | None = None

    def to_directory_row(self) -> dict[str, Any]:
        """Convert to ticker directory column values."""
        return {
            "symbol": self.symbol.upper(),
            "company_name": self.company_name,
            "sector": self.sector,
            "industry": self.industry,
            "description_static": self.description,
            "competitors": self.competitors,
        }


class QuoteAdapter(ABC):
    """Maps one provider's raw payload to a NormalizedQuote."""

    @abstractmethod
    def normalize(self, symbol: str, raw_payload: dict[str, Any]) -> NormalizedQuote:
        """
        Normalize a raw provider response.

        Args:
            symbol: Symbol that was requested
            raw_payload: Decoded JSON body returned by the provider

        Returns:
            NormalizedQuote

        Raises:
            QuoteNotFoundError: If the payload is empty or malformed for the symbol
            UpstreamUnavailableError: If the payload signals provider-side throttling
        """
        pass


class QuoteProviderInterface(ABC):
    """
    Abstract interface for quote providers.

    Implementations make exactly one upstream request per call and never retry;
    retry and budget policy belong to the caller.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider (e.g., 'alpha_vantage')."""
        pass

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        """
        Fetch the latest quote for a provider-native symbol.

        Args:
            symbol: Resolved ticker symbol (never a company name)

        Returns:
            NormalizedQuote

        Raises:
            QuoteNotFoundError: If the provider has no data for the symbol
            UpstreamUnavailableError: On transport errors or non-2xx status
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None


class ReasoningServiceInterface(ABC):
    """Abstract interface for the text-generation service used to resolve names."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def generate_json(self, prompt: str, max_output_tokens: int | None = None) -> str:
        """
        Send a prompt that demands a JSON-only answer and return the raw text.

        Args:
            prompt: Complete prompt text
            max_output_tokens: Token budget for the answer

        Returns:
            Raw response text (may still be wrapped in markdown fences)

        Raises:
            UpstreamUnavailableError: On timeout, transport errors or non-2xx status
        """
        pass

    async def aclose(self) -> None:
        return None
