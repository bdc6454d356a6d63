"""Financial data endpoint for signed-in users."""
import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from fastapi import status

from depot_quotes.core.auth import get_current_user_id
from depot_quotes.core.deps import get_financial_data_service
from depot_quotes.core.docs import COMMON_RESPONSES
from depot_quotes.schemas.quote import FinancialDataResponse
from depot_quotes.services.financial_data_service import FinancialDataService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/financial-data",
    response_model=FinancialDataResponse,
    summary="Get Financial Data",
    description="Resolves a name, ISIN or symbol through the ticker directory and returns "
    "its metadata with the current price. A stored price younger than the cache TTL "
    "is returned without a provider call.",
    operation_id="get_financial_data",
    responses={
        401: {"description": "Missing or invalid bearer token"},
        **{code: COMMON_RESPONSES[code] for code in (400, 404, 429, 503)},
    },
)
async def get_financial_data(
    q: str = Query("", max_length=200, description="Company name, ISIN or ticker symbol"),
    user_id: str = Depends(get_current_user_id),
    service: FinancialDataService = Depends(get_financial_data_service),
) -> FinancialDataResponse:
    query = q.strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Query parameter 'q' required")

    logger.info(f"Financial data lookup for '{query}' by user {user_id}")
    result = await service.get_financial_data(query)
    return FinancialDataResponse.from_result(result)
