"""FastAPI documentation configuration and metadata."""
from typing import Any

from fastapi.openapi.utils import get_openapi

from depot_quotes.schemas.quote import ErrorResponse

API_TITLE = "Depot Quotes API"
API_DESCRIPTION = """
## Depot Quotes API

Ticker resolution and quote caching for depot analysis.

### Key Features

- **Ticker directory** - shared mapping of company names and ISINs to exchange symbols
- **Name resolution** - unknown names are resolved once by a reasoning service and stored
- **Quotes** - Alpha Vantage GLOBAL_QUOTE prices behind a TTL cache
- **Call budget** - per-minute and per-day ceilings; stale data is served instead of failing

### Degraded Responses

When the provider budget is exhausted or the provider fails, the last known
quote is returned with `cachedOnly` (and `limitReached` for budget exhaustion)
set to `true`. These are 200 responses, not errors.

### Authentication

`/financial-data` and `/tickers/resolve` require `Authorization: Bearer <token>`.

### Error Handling

All errors share one body shape: `{"error": "..."}`. Budget exhaustion without
cached data returns 429 with `limitReached` and `resetAt`.
"""

API_VERSION = "1.0.0"

OPENAPI_TAGS: list[dict[str, Any]] = [
    {
        "name": "health",
        "description": "**System Health & Monitoring**\n\n"
        "Health, readiness and liveness probes, including the current call budget.",
    },
    {
        "name": "quotes",
        "description": "**Quotes**\n\n"
        "Cached quote lookups by symbol, ISIN or name, and budget introspection.",
    },
    {
        "name": "financial-data",
        "description": "**Financial Data**\n\n"
        "Directory metadata joined with the current price (authenticated).",
    },
    {
        "name": "tickers",
        "description": "**Ticker Directory**\n\n"
        "Directory lookups and batch name resolution.",
    },
]

COMMON_RESPONSES = {
    400: {
        "description": "Bad Request - Invalid input parameters",
        "model": ErrorResponse,
        "content": {"application/json": {"example": {"error": "Symbol or ISIN required"}}},
    },
    404: {
        "description": "Not Found - Unknown name or no price data",
        "model": ErrorResponse,
        "content": {"application/json": {"example": {"error": "No price data found for this symbol."}}},
    },
    429: {
        "description": "Too Many Requests - Call budget exhausted and nothing cached",
        "model": ErrorResponse,
        "content": {
            "application/json": {
                "example": {
                    "error": "Daily quote limit reached, please retry after the window resets.",
                    "limitReached": True,
                    "resetAt": "2026-01-16T00:00:00Z",
                }
            }
        },
    },
    503: {
        "description": "Service Unavailable - Quote provider unavailable",
        "model": ErrorResponse,
        "content": {"application/json": {"example": {"error": "Quote service temporarily unavailable."}}},
    },
}


def custom_openapi_schema(app) -> dict[str, Any]:
    """Generate the OpenAPI schema with tags and the bearer auth scheme.

    Args:
        app: FastAPI application instance

    Returns:
        Dict[str, Any]: Custom OpenAPI schema
    """
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=API_TITLE,
        version=API_VERSION,
        description=API_DESCRIPTION,
        routes=app.routes,
        tags=OPENAPI_TAGS,
    )

    openapi_schema["components"] = openapi_schema.get("components", {})
    openapi_schema["components"].setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema
