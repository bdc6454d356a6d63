"""FastAPI application: routers, error mapping and process lifecycle.
"""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from depot_quotes.api.v1 import financial_data
from depot_quotes.api.v1 import health
from depot_quotes.api.v1 import quotes
from depot_quotes.api.v1 import tickers
from depot_quotes.core.config import Settings
from depot_quotes.core.config import get_settings
from depot_quotes.core.database import close_db
from depot_quotes.core.deps import cleanup_dependencies
from depot_quotes.core.docs import API_DESCRIPTION
from depot_quotes.core.docs import API_TITLE
from depot_quotes.core.docs import API_VERSION
from depot_quotes.core.docs import OPENAPI_TAGS
from depot_quotes.core.docs import custom_openapi_schema
from depot_quotes.core.exceptions import InvalidSymbolError
from depot_quotes.core.exceptions import QuoteNotFoundError
from depot_quotes.core.exceptions import QuoteServiceError
from depot_quotes.core.exceptions import RateLimitedError
from depot_quotes.core.exceptions import UnresolvableNameError
from depot_quotes.core.exceptions import UpstreamFormatError
from depot_quotes.core.exceptions import UpstreamUnavailableError
from depot_quotes.core.limiter import limiter
from depot_quotes.utils.structured_logging import configure_structured_logging
from depot_quotes.utils.structured_logging import get_logger

configure_structured_logging(
    log_level=get_settings().log_level,
    json_logs=not get_settings().is_development,
)
logger = get_logger(__name__)

# Checked in order; subclasses before their bases
ERROR_STATUS_CODES: list[tuple[type[QuoteServiceError], int]] = [
    (InvalidSymbolError, status.HTTP_400_BAD_REQUEST),
    (UnresolvableNameError, status.HTTP_404_NOT_FOUND),
    (QuoteNotFoundError, status.HTTP_404_NOT_FOUND),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
    (UpstreamFormatError, status.HTTP_502_BAD_GATEWAY),
    (UpstreamUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: QuoteServiceError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: QuoteServiceError) -> dict:
    """JSON body for a domain error; only the public message is exposed."""
    body: dict = {"error": exc.public_message}
    if isinstance(exc, RateLimitedError):
        body["limitReached"] = True
        body["resetAt"] = exc.reset_at.isoformat() if exc.reset_at else None
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log the effective configuration on startup; drain and close on shutdown.

    The schema is managed by Alembic (``alembic upgrade head``), not here.
    """
    settings = get_settings()
    logger.info(
        "Starting Depot Quotes API",
        environment=settings.environment,
        quote_provider=settings.quote_provider,
        reasoning_provider=settings.reasoning_provider,
        cache_ttl_seconds=settings.quote_cache_ttl_seconds,
        rate_limit_per_minute=settings.quote_rate_limit_per_minute,
        rate_limit_per_day=settings.quote_rate_limit_per_day,
    )
    try:
        yield
    finally:
        logger.info("Shutting down Depot Quotes API")
        await cleanup_dependencies()
        await close_db()


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Every handled failure leaves the API as ``{"error": ...}``."""

    @app.exception_handler(QuoteServiceError)
    async def quote_service_error_handler(request: Request, exc: QuoteServiceError) -> JSONResponse:
        status_code = status_code_for(exc)
        # Internal detail (upstream status, symbol) goes to the log only
        logger.warning(
            "Request failed",
            error_type=type(exc).__name__,
            error=str(exc),
            status_code=status_code,
            path=request.url.path,
        )
        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        content = {"error": "Internal Server Error"}
        if settings.is_development:
            content["detail"] = str(exc)
            content["type"] = type(exc).__name__
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def create_app() -> FastAPI:
    """Build the FastAPI application from the current settings."""
    settings = get_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app, settings)

    prefix = settings.api_v1_prefix
    app.include_router(health.router, prefix=prefix, tags=["health"])
    app.include_router(quotes.router, prefix=prefix, tags=["quotes"])
    app.include_router(financial_data.router, prefix=prefix, tags=["financial-data"])
    app.include_router(tickers.router, prefix=f"{prefix}/tickers", tags=["tickers"])

    if docs_enabled:
        app.openapi = lambda: custom_openapi_schema(app)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {
            "message": API_TITLE,
            "version": API_VERSION,
            "docs": "/docs" if docs_enabled else "disabled",
            "health": f"{prefix}/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "depot_quotes.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
