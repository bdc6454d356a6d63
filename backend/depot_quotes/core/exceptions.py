"""Core exception classes for ticker resolution and quote lookups.

Every error that may reach the HTTP boundary derives from QuoteServiceError and
carries a user-facing message that is safe to return (no upstream bodies, no keys).
"""
from datetime import datetime


class QuoteServiceError(Exception):
    """Base exception for resolution and quote operations."""

    user_message = "Quote service error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)

    @property
    def public_message(self) -> str:
        return self.user_message


class UnresolvableNameError(QuoteServiceError):
    """Raised when the reasoning service cannot map a name to a ticker."""

    user_message = "No ticker found for this name, please enter the exchange symbol directly."

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No ticker found for '{name}'")


class UpstreamFormatError(QuoteServiceError):
    """Raised when the reasoning service response is not parseable JSON."""

    user_message = "Ticker resolution returned an unreadable answer, please try again."

    def __init__(self, message: str, raw: str | None = None):
        self.raw = raw
        super().__init__(message)


class QuoteNotFoundError(QuoteServiceError):
    """Raised when the provider has no price data for a symbol."""

    user_message = "No price data found for this symbol."

    def __init__(self, symbol: str, message: str | None = None):
        self.symbol = symbol
        super().__init__(message or f"No price data found for '{symbol}'")


class UpstreamUnavailableError(QuoteServiceError):
    """Raised on transport or non-2xx failures talking to an upstream service."""

    user_message = "Quote service temporarily unavailable."

    def __init__(self, status_code: int | None, message: str, service: str = "quote_provider"):
        self.status_code = status_code
        self.message = message
        self.service = service
        super().__init__(f"{service} failed (status={status_code}): {message}")


class RateLimitedError(QuoteServiceError):
    """Raised when the local call budget is exhausted and no cached quote exists."""

    user_message = "Daily quote limit reached, please retry after the window resets."

    def __init__(self, symbol: str, reset_at: datetime | None = None):
        self.symbol = symbol
        self.reset_at = reset_at
        super().__init__(f"Rate budget exhausted for '{symbol}' (reset_at={reset_at})")


class InvalidSymbolError(QuoteServiceError):
    """Raised when the input cannot be a ticker, ISIN or company name."""

    user_message = "Invalid symbol or name."

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid symbol or name: '{value}'")
