"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from servicedesk.config import settings
from servicedesk.core import ApplicationException
from servicedesk.shared.infrastructure.logging import get_context_logger, get_logger

logger = get_logger(__name__)


# error_code -> (HTTP status, message shown to the user)
ERROR_RESPONSES = {
    "validation_error": (
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Some required fields are missing or invalid."
    ),
    "invalid_transition": (
        status.HTTP_409_CONFLICT,
        "This action is not available for the ticket's current status."
    ),
    "already_claimed": (
        status.HTTP_409_CONFLICT,
        "This ticket was just taken by someone else."
    ),
    "ticket_closed": (
        status.HTTP_409_CONFLICT,
        "This ticket is closed and can no longer be changed."
    ),
    "permission_denied": (
        status.HTTP_403_FORBIDDEN,
        "You do not have permission to perform this action."
    ),
    "not_found": (
        status.HTTP_404_NOT_FOUND,
        "The requested item no longer exists."
    ),
    "storage_unavailable": (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "The ticket store is temporarily unavailable. Please try again."
    ),
}


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    Correlation IDs link the request log lines with the notification
    events and storage errors emitted while serving it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs all requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()
        request_logger = get_context_logger(__name__, correlation_id)
        request_logger.debug(f"{request.method} {request.url.path} started")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Render typed ticket outcomes as JSON.

    Each error kind gets its own status code and user-facing message so the
    client can show e.g. "This ticket was just taken by someone else" instead
    of a generic failure banner.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    status_code, user_message = ERROR_RESPONSES.get(
        exc.error_code,
        (status.HTTP_400_BAD_REQUEST, "The request could not be completed.")
    )

    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request rejected",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "error_code": exc.error_code,
            "error_message": exc.message,
        }
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "message": user_message,
            "detail": exc.message,
            "details": exc.details,
            "correlation_id": correlation_id,
        }
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    # Don't expose internal details in production
    is_dev = settings.environment == "development"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )
