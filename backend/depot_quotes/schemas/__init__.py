"""Pydantic schemas for API request/response validation."""

from depot_quotes.schemas.base import StrictBaseModel
from depot_quotes.schemas.quote import (
    BudgetResponse,
    ErrorResponse,
    FinancialDataResponse,
    QuoteListItem,
    QuoteListResponse,
    QuoteResponse,
    ResolveRequest,
    ResolveResponse,
    TickerResponse,
)

__all__ = [
    "BudgetResponse",
    "ErrorResponse",
    "FinancialDataResponse",
    "QuoteListItem",
    "QuoteListResponse",
    "QuoteResponse",
    "ResolveRequest",
    "ResolveResponse",
    "StrictBaseModel",
    "TickerResponse",
]
