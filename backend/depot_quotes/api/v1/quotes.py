"""Quote endpoints: single and multiple lookups plus budget introspection."""
import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from fastapi import Request
from fastapi import status

from depot_quotes.core.config import get_settings
from depot_quotes.core.deps import get_quote_service
from depot_quotes.core.deps import get_rate_budget
from depot_quotes.core.docs import COMMON_RESPONSES
from depot_quotes.core.limiter import limiter
from depot_quotes.schemas.quote import BudgetResponse
from depot_quotes.schemas.quote import QuoteListItem
from depot_quotes.schemas.quote import QuoteListResponse
from depot_quotes.schemas.quote import QuoteResponse
from depot_quotes.services.quote_cache import RateBudget
from depot_quotes.services.quote_service import QuoteService

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()

MAX_SYMBOLS_PER_REQUEST = 20


@router.get(
    "/quote",
    response_model=QuoteResponse,
    summary="Get Quote",
    description="Quote for a ticker symbol or ISIN. Served from cache when fresh; "
    "when the call budget is exhausted the last known quote is returned with "
    "`cachedOnly` and `limitReached` set.",
    operation_id="get_quote",
    responses={code: COMMON_RESPONSES[code] for code in (400, 404, 429, 503)},
)
@limiter.limit(settings.rate_limit_quotes)
async def get_quote(
    request: Request,
    symbol: str | None = Query(None, max_length=100, description="Ticker symbol (e.g. AAPL, MBG.DE)"),
    isin: str | None = Query(None, max_length=12, description="ISIN (e.g. IE00B4L5Y983)"),
    mode: str = Query("quote", description="Lookup mode; only 'quote' is supported"),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    value = (symbol or isin or "").strip()
    if not value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Symbol or ISIN required")
    if mode != "quote":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported mode: {mode}")

    result = await service.get_quote(value, explicit_symbol=bool(symbol and symbol.strip()))
    return QuoteResponse.from_result(result)


@router.get(
    "/quotes",
    response_model=QuoteListResponse,
    summary="Get Multiple Quotes",
    description="Sequential lookups sharing one call budget. "
    "Failed lookups are returned with a null quote.",
    operation_id="get_quotes",
    responses={400: COMMON_RESPONSES[400]},
)
@limiter.limit(settings.rate_limit_quotes)
async def get_quotes(
    request: Request,
    symbols: str = Query(..., description="Comma-separated symbols, ISINs or names"),
    service: QuoteService = Depends(get_quote_service),
) -> QuoteListResponse:
    inputs = [s.strip() for s in symbols.split(",") if s.strip()]
    if not inputs:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one symbol required")
    if len(inputs) > MAX_SYMBOLS_PER_REQUEST:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {MAX_SYMBOLS_PER_REQUEST} symbols per request",
        )

    results = await service.get_quotes(inputs)
    return QuoteListResponse(
        results=[
            QuoteListItem(input=value, quote=QuoteResponse.from_result(result) if result else None)
            for value, result in zip(inputs, results)
        ]
    )


@router.get(
    "/quote/budget",
    response_model=BudgetResponse,
    summary="Get Call Budget",
    description="Upstream calls used by this instance in the current minute and UTC day.",
    operation_id="get_quote_budget",
)
async def get_quote_budget(budget: RateBudget = Depends(get_rate_budget)) -> BudgetResponse:
    return BudgetResponse(**budget.snapshot())
