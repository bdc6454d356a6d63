"""Ticker directory endpoints."""
import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status

from depot_quotes.core.auth import get_current_user_id
from depot_quotes.core.deps import get_ticker_service
from depot_quotes.core.deps import get_validated_symbol
from depot_quotes.schemas.quote import ResolveRequest
from depot_quotes.schemas.quote import ResolveResponse
from depot_quotes.schemas.quote import TickerResponse
from depot_quotes.services.ticker_service import TickerService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/resolve",
    response_model=ResolveResponse,
    summary="Resolve Names",
    description="Resolves several company or fund names with one reasoning-service call "
    "and stores the results in the directory. Unresolvable names are omitted.",
    operation_id="resolve_tickers",
    responses={
        401: {"description": "Missing or invalid bearer token"},
        502: {"description": "Reasoning service returned an unreadable answer"},
        503: {"description": "Reasoning service unavailable"},
    },
)
async def resolve_tickers(
    request: ResolveRequest,
    user_id: str = Depends(get_current_user_id),
    service: TickerService = Depends(get_ticker_service),
) -> ResolveResponse:
    logger.info(f"Batch resolution of {len(request.names)} names by user {user_id}")
    resolved = await service.resolve_and_store_many(request.names)
    return ResolveResponse(
        requested=len(request.names),
        results=[TickerResponse.from_resolved(ticker) for ticker in resolved],
    )


@router.get(
    "/{symbol}",
    response_model=TickerResponse,
    summary="Get Directory Entry",
    description="Returns the directory row for an exact ticker symbol.",
    operation_id="get_ticker",
    responses={
        400: {"description": "Invalid symbol format"},
        404: {"description": "Symbol not in directory"},
    },
)
async def get_ticker(
    symbol: str = Depends(get_validated_symbol),
    service: TickerService = Depends(get_ticker_service),
) -> TickerResponse:
    entry = await service.get_entry(symbol)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Ticker {symbol} not found")
    return TickerResponse.from_model(entry)
