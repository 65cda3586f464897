"""Error handling and consistent error response format."""

import logging
import uuid
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error response envelope.

    Format: {error, error_code, details, request_id}
    ``error`` is the human-readable message clients display; ``error_code`` is stable.
    """

    error: str
    error_code: str
    details: Any | None = None
    request_id: str | None = None


def get_request_id(request: Request) -> str:
    """Get request ID from request state or generate new one."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors (422)."""
    request_id = get_request_id(request)

    details: list[dict[str, Any]] = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "issue": error.get("msg", "Validation error"),
            "type": error.get("type", "validation_error"),
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="Invalid request data",
            error_code="VALIDATION_ERROR",
            details=details,
            request_id=request_id,
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    from app.core.app_exceptions import AppError

    request_id = get_request_id(request)

    # Handle AppError (has structured detail with code)
    if isinstance(exc, AppError):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.message,
                error_code=exc.code,
                details=exc.details,
                request_id=request_id,
            ).model_dump(),
        )

    # Handle standard HTTPException
    details = None
    code = "HTTP_ERROR"
    if isinstance(exc.detail, dict):
        if "code" in exc.detail:
            code = exc.detail["code"]
            message = exc.detail.get("message", "An error occurred")
            details = exc.detail.get("details")
        else:
            details = exc.detail.copy()
            message = details.pop("message", "An error occurred")
    elif isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=message,
            error_code=code,
            details=details,
            request_id=request_id,
        ).model_dump(),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions (500)."""
    request_id = get_request_id(request)
    logger.error(
        "Unhandled exception",
        extra={"event": "unhandled_exception", "request_id": request_id},
        exc_info=exc,
    )

    # In production, don't expose internal error details
    from app.core.config import settings

    if settings.ENV == "prod":
        message = "An internal server error occurred"
        details = None
    else:
        message = str(exc)
        details = {"type": type(exc).__name__}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=message,
            error_code="INTERNAL_ERROR",
            details=details,
            request_id=request_id,
        ).model_dump(),
    )
