"""Upstream provider abstractions and implementations.

Available providers:
- AlphaVantageProvider: GLOBAL_QUOTE prices (direct or via RapidAPI)
- GeminiReasoningService: name-to-ticker resolution
- MockQuoteProvider / MockReasoningService: canned data for testing
"""

from depot_quotes.providers.alpha_vantage import AlphaVantageAdapter, AlphaVantageProvider
from depot_quotes.providers.base import (
    NormalizedQuote,
    QuoteAdapter,
    QuoteProviderInterface,
    ReasoningServiceInterface,
    ResolvedTicker,
)
from depot_quotes.providers.gemini import GeminiReasoningService
from depot_quotes.providers.mock import MockQuoteProvider, MockReasoningService

__all__ = [
    "AlphaVantageAdapter",
    "AlphaVantageProvider",
    "GeminiReasoningService",
    "MockQuoteProvider",
    "MockReasoningService",
    "NormalizedQuote",
    "QuoteAdapter",
    "QuoteProviderInterface",
    "ReasoningServiceInterface",
    "ResolvedTicker",
]
