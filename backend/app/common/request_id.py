"""Request ID middleware."""

import time
import uuid
from typing import Any, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import get_logger

logger = get_logger(__name__)

# Path parameters worth lifting onto the request log line
LOGGED_PATH_PARAMS = ("quiz_id", "question_ref")


def _route_context(request: Request) -> dict[str, Any]:
    """Identifiers from the matched route; empty until routing has run."""
    path_params = request.scope.get("path_params") or {}
    return {name: path_params[name] for name in LOGGED_PATH_PARAMS if name in path_params}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an ID and log its outcome with the quiz or question it touched."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and add request ID."""
        # Generate or extract request ID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # Log request start
        start_time = time.time()
        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": str(request.query_params),
            },
        )

        # Process request
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": 500,
                    "latency_ms": elapsed_ms,
                    "error": str(e),
                    **_route_context(request),
                },
                exc_info=True,
            )
            raise

        # Calculate latency
        elapsed_ms = int((time.time() - start_time) * 1000)

        # Add request ID to response header
        response.headers["X-Request-ID"] = request_id

        # Log request completion; the router has filled in path params by now
        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": elapsed_ms,
                **_route_context(request),
            },
        )

        return response
