"""Custom middleware for request logging, error handling and exception mapping."""

import logging
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from src.ai.gateway import AIConfigurationError, AIProviderError
from src.core.auth import AuthConfigurationError
from src.core.usage import QuotaExceededException, UsageTrackingError
from src.db.connection import DatabaseUnavailableError
from src.utils.timer_utils import elapsed_ms, start_clock

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a short id and log method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        started = start_clock()
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} "
            f"- Client: {request.client.host if request.client else 'unknown'}"
        )

        response = await call_next(request)

        duration_ms = elapsed_ms(started)
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Duration: {duration_ms:.1f}ms"
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-MS"] = f"{duration_ms:.1f}"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort handler: log the exception, return a generic 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = _request_id(request)
            logger.exception(f"[{request_id}] Unhandled exception: {type(e).__name__}: {e}")

            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "message": "An unexpected error occurred",
                    "request_id": request_id,
                },
            )


def add_middleware(app: FastAPI) -> None:
    """Add all custom middleware to the application."""
    # Error handling must wrap request logging
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================

def _error(status_code: int, request: Request, error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **extra, "request_id": _request_id(request)},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"[{_request_id(request)}] HTTP {exc.status_code} - {exc.detail} - Path: {request.url.path}")
    return _error(exc.status_code, request, exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Validation failures are 400 with one entry per offending field."""
    request_id = _request_id(request)

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
        logger.info(f"[{request_id}] Validation error - Field: {field}, Message: {error['msg']}")

    return _error(400, request, "Validation error", details=errors)


async def usage_exception_handler(request: Request, exc: UsageTrackingError):
    request_id = _request_id(request)

    if isinstance(exc, QuotaExceededException):
        logger.info(
            f"[{request_id}] Quota exceeded: needed {exc.tokens_needed}, "
            f"remaining {exc.tokens_remaining}"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={**exc.to_response_dict(), "request_id": request_id},
        )

    logger.warning(f"[{request_id}] {type(exc).__name__}: {exc.message}")
    return _error(exc.status_code, request, exc.message)


async def database_unavailable_handler(request: Request, exc: DatabaseUnavailableError):
    logger.error(f"[{_request_id(request)}] Database unavailable: {exc}")
    return _error(503, request, "Service temporarily unavailable")


async def auth_configuration_handler(request: Request, exc: AuthConfigurationError):
    logger.error(f"[{_request_id(request)}] Authentication is not configured: {exc}")
    return _error(503, request, "Authentication is not configured")


async def ai_provider_handler(request: Request, exc: AIProviderError):
    request_id = _request_id(request)
    if isinstance(exc, AIConfigurationError):
        logger.error(f"[{request_id}] AI provider is not configured: {exc.message}")
        return _error(503, request, "AI provider is not configured")

    logger.error(f"[{request_id}] AI provider failed: {exc.message}")
    return _error(502, request, "AI provider request failed")


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(UsageTrackingError, usage_exception_handler)
    app.add_exception_handler(DatabaseUnavailableError, database_unavailable_handler)
    app.add_exception_handler(AuthConfigurationError, auth_configuration_handler)
    app.add_exception_handler(AIProviderError, ai_provider_handler)
