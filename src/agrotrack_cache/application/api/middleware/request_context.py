"""
Request Context Middleware - Educational Documentation
=======================================================

WHAT DOES THIS MIDDLEWARE DO?
-----------------------------
It establishes the per-request context every other layer relies on:

1. Request ID: read from X-Request-ID (or generated), bound to a context
   variable so every log line of the request carries it, and echoed on the
   response for client-side correlation.
2. Caller identity: the upstream auth layer forwards the authenticated
   user in X-User-ID. It is stored on request.state.user_id, which is what
   the response cache uses to keep users' cached payloads apart.
3. Request logging: method, path, status and duration of every request,
   with sensitive headers redacted.

WHY A CONTEXT VARIABLE?
-----------------------
contextvars are task-local in asyncio. Binding the request ID once here
means the structlog processor can attach it to every log line without
passing it through every function call.
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from agrotrack_cache.core.config.constants import HEADER_REQUEST_ID, HEADER_USER_ID
from agrotrack_cache.core.logging.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)

# Headers whose values never reach the logs
SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "x-api-key",
    "x-auth-token",
}


def sanitize_headers(headers: dict) -> dict:
    """Replace sensitive header values with "[REDACTED]"."""
    return {key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value for key, value in headers.items()}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds request ID and user identity, logs request completion.

    request.state after this middleware:
        request_id: str         always set
        user_id: str | None     authenticated user, None for anonymous calls
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        request_id = request.headers.get(HEADER_REQUEST_ID) or f"req_{uuid.uuid4().hex}"
        request.state.request_id = request_id
        request.state.user_id = request.headers.get(HEADER_USER_ID) or None
        set_request_id(request_id)

        method = request.method
        path = request.url.path

        logger.debug(
            f"Incoming request: {method} {path}",
            method=method,
            path=path,
            query_params=str(request.query_params) if request.query_params else None,
            headers=sanitize_headers(dict(request.headers)),
        )

        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id

            logger.info(
                f"Request completed: {method} {path}",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_seconds=round(time.perf_counter() - start_time, 4),
            )
            return response
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path}",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(time.perf_counter() - start_time, 4),
            )
            # Let the error handling middleware format the response
            raise
        finally:
            clear_request_id()
