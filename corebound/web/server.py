"""FastAPI application factory and server lifecycle.

Wires middleware (request IDs, CORS), error handlers that answer with
``{"error": message}``, and every API router.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .. import __version__
from ..config import CoreboundConfig
from ..exceptions import CoreboundError, RateLimitExceededError
from ..logging.log_context import LogContext
from ..providers.market_data import MarketListCache
from ..validation import ValidationError
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add a request ID to each API request for correlation tracking."""

    async def dispatch(self, request, call_next):
        """Adopt the caller's X-Request-ID or generate one, and echo it back.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware in chain

        Returns:
            Response with X-Request-ID header
        """
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or LogContext.generate_correlation_id()
        LogContext.set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
        finally:
            LogContext.set_user_id(None)

        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


def _error_response(message: str, status_code: int, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(CoreboundError)
    async def corebound_error_handler(request: Request, exc: CoreboundError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        headers = None
        if isinstance(exc, RateLimitExceededError) and exc.retry_after_ms:
            headers = {"Retry-After": str(max(1, round(exc.retry_after_ms / 1000)))}
        return _error_response(exc.message, exc.status_code, headers)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error_response(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"Invalid {field}" if field else "Invalid request body"
        return _error_response(message, 400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return _error_response("Internal server error", 500)


def create_app(config: Optional[CoreboundConfig] = None, rate_limiter: Optional[RateLimiter] = None) -> FastAPI:
    """Build the API application.

    Args:
        config: Configuration (defaults to CoreboundConfig.from_env())
        rate_limiter: Shared limiter (defaults to a fresh in-memory one)

    Returns:
        Configured FastAPI app; config and limiter live on ``app.state``

    Example:
        >>> app = create_app(CoreboundConfig(jwt_secret="dev-secret"))
        >>> client = TestClient(app)
        >>> client.get("/health").json()["status"]
        'healthy'
    """
    from ..api import ROUTERS

    config = config or CoreboundConfig.from_env()

    app = FastAPI(
        title="Corebound API",
        description="Strategies, sessions, arena and community for AI trading",
        version=__version__,
    )
    app.state.config = config
    app.state.rate_limiter = rate_limiter or RateLimiter()
    app.state.market_caches = {venue: MarketListCache() for venue in ("hyperliquid", "coinbase")}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Lightweight health check for load balancers and Docker HEALTHCHECK."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


def run(config: CoreboundConfig):
    """Blocking entry point used by ``corebound serve``."""
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
