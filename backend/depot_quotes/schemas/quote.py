"""Schemas for quote, financial data and ticker directory endpoints."""
from datetime import datetime

from pydantic import Field

from depot_quotes.models.ticker import TickerMapping
from depot_quotes.providers.base import ResolvedTicker
from depot_quotes.schemas.base import StrictBaseModel
from depot_quotes.services.financial_data_service import FinancialDataResult
from depot_quotes.services.quote_service import QuoteResult


class QuoteResponse(StrictBaseModel):
    """Normalized quote with cache and degrade flags."""

    symbol: str = Field(..., description="Provider symbol")
    price: float = Field(..., description="Last price")
    change: float = Field(..., description="Absolute change vs. previous close")
    change_percent: float = Field(..., alias="changePercent", description="Percent change vs. previous close")
    volume: int = Field(..., description="Trading volume")
    currency: str = Field(..., description="Quote currency")
    from_cache: bool = Field(False, alias="fromCache", description="Served from cache without a provider call")
    cached_only: bool = Field(False, alias="cachedOnly", description="Stale cached value, live data was not obtained")
    limit_reached: bool = Field(False, alias="limitReached", description="Call budget exhausted")
    degraded: bool = Field(False, description="Stale data served in place of a live quote")
    last_updated: datetime | None = Field(None, alias="lastUpdated", description="When the quote was fetched")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "symbol": "AAPL",
                    "price": 150.25,
                    "change": 1.10,
                    "changePercent": 0.74,
                    "volume": 1000000,
                    "currency": "USD",
                    "fromCache": False,
                    "cachedOnly": False,
                    "limitReached": False,
                    "degraded": False,
                    "lastUpdated": "2026-01-15T14:30:00Z",
                }
            ]
        }
    }

    @classmethod
    def from_result(cls, result: QuoteResult) -> "QuoteResponse":
        return cls(
            symbol=result.symbol,
            price=result.price,
            change=result.change,
            change_percent=result.change_percent,
            volume=result.volume,
            currency=result.currency,
            from_cache=result.from_cache,
            cached_only=result.cached_only,
            limit_reached=result.limit_reached,
            degraded=result.degraded,
            last_updated=result.fetched_at,
        )


class QuoteListItem(StrictBaseModel):
    """One entry of a multi-quote response; quote is null when the lookup failed."""

    input: str
    quote: QuoteResponse | None = None


class QuoteListResponse(StrictBaseModel):
    results: list[QuoteListItem]


class FinancialDataResponse(StrictBaseModel):
    """Directory metadata joined with the current price."""

    symbol: str
    company_name: str
    sector: str | None = None
    industry: str | None = None
    description: str | None = None
    pe_ratio: float | None = None
    price: float
    currency: str
    change: float
    change_percent: float = Field(..., alias="changePercent")
    volume: int
    from_cache: bool = Field(..., alias="fromCache")
    last_updated: datetime | None = Field(None, alias="lastUpdated")
    cached_only: bool = Field(False, alias="cachedOnly")
    limit_reached: bool = Field(False, alias="limitReached")
    degraded: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "symbol": "MBG.DE",
                    "company_name": "Mercedes-Benz Group AG",
                    "sector": "Consumer Cyclical",
                    "industry": "Auto Manufacturers",
                    "description": None,
                    "pe_ratio": None,
                    "price": 62.15,
                    "currency": "USD",
                    "change": 0.0,
                    "changePercent": 0.0,
                    "volume": 0,
                    "fromCache": True,
                    "lastUpdated": "2026-01-15T14:30:00Z",
                    "cachedOnly": False,
                    "limitReached": False,
                    "degraded": False,
                }
            ]
        }
    }

    @classmethod
    def from_result(cls, result: FinancialDataResult) -> "FinancialDataResponse":
        return cls(**result.to_dict())


class TickerResponse(StrictBaseModel):
    """Ticker directory entry."""

    symbol: str
    company_name: str
    sector: str | None = None
    industry: str | None = None
    description: str | None = None
    competitors: str | None = None

    @classmethod
    def from_model(cls, entry: TickerMapping) -> "TickerResponse":
        return cls(
            symbol=entry.symbol,
            company_name=entry.company_name,
            sector=entry.sector,
            industry=entry.industry,
            description=entry.description_static,
            competitors=entry.competitors,
        )

    @classmethod
    def from_resolved(cls, ticker: ResolvedTicker) -> "TickerResponse":
        return cls(
            symbol=ticker.symbol,
            company_name=ticker.company_name,
            sector=ticker.sector,
            industry=ticker.industry,
            description=ticker.description,
            competitors=ticker.competitors,
        )


class ResolveRequest(StrictBaseModel):
    """Batch resolution request."""

    names: list[str] = Field(..., min_length=1, max_length=50, description="Company or fund names")

    model_config = {
        "json_schema_extra": {"examples": [{"names": ["Mercedes", "Apple", "iShares Core MSCI World"]}]}
    }


class ResolveResponse(StrictBaseModel):
    """Resolved entries; names that could not be resolved are absent."""

    requested: int
    results: list[TickerResponse]


class BudgetResponse(StrictBaseModel):
    """Current upstream call budget of this instance."""

    minute_count: int
    day_count: int
    minute_limit: int
    day_limit: int
    next_reset: datetime


class ErrorResponse(StrictBaseModel):
    """Error body returned for every handled failure."""

    error: str
    limit_reached: bool | None = Field(None, alias="limitReached")
    reset_at: datetime | None = Field(None, alias="resetAt")
