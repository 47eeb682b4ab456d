"""
Consistent error handling for the authorization engine.

Every gate either returns or raises exactly one AppError subclass:

- AuthenticationError (401): no valid actor identity
- PermissionDeniedError (403): valid actor, insufficient role/scope/entitlement/quota
- NotFoundError (404): target missing OR intentionally hidden from the actor
- ConflictError (409): reserved for CRUD callers

Errors render as:
    {"success": false, "error": {"code": ..., "message": ..., "details": {...}, "correlation_id": ...}}
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def generate_correlation_id() -> str:
    """Generate a new correlation ID for request tracing."""
    return str(uuid.uuid4())


def get_correlation_id(request: Request) -> str:
    """Get correlation ID from request state or headers, creating one if absent."""
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        return correlation_id
    return request.headers.get("X-Correlation-ID") or generate_correlation_id()


class AppError(Exception):
    """Base application error with an HTTP-equivalent status class."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, correlation_id: Optional[str] = None) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        error: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            error["details"] = self.details
        if correlation_id:
            error["correlation_id"] = correlation_id
        return {"success": False, "error": error}


class AuthenticationError(AppError):
    """No valid actor identity. Must be handled before any gate runs."""

    http_status = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    default_message = "Authentication required"


class PermissionDeniedError(AppError):
    """Authenticated actor lacks the role, scope, entitlement or quota."""

    http_status = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    """
    Target does not exist, or exists but is hidden from the actor.

    The two cases MUST share a message to avoid enumeration leaks.
    """

    http_status = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    """Not produced by the engine; reserved for the CRUD layer."""

    http_status = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    default_message = "Resource conflict"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as a structured JSON response."""
    correlation_id = get_correlation_id(request)
    log = logger.warning if exc.http_status < 500 else logger.error
    log(
        "Request rejected",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.http_status,
            "path": request.url.path,
            "method": request.method,
            "correlation_id": correlation_id,
        }
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(correlation_id),
        headers={"X-Correlation-ID": correlation_id},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the AppError handler on a FastAPI application."""
    app.add_exception_handler(AppError, app_error_handler)
