"""
Error Handling Middleware - Educational Documentation
======================================================

WHAT IS CENTRALIZED ERROR HANDLING?
------------------------------------
Route handlers raise; they do not format error responses themselves.
Two layers turn exceptions into responses:

1. Exception handlers registered in app.py map the service's own
   AgroTrackError family (ValidationError → 400, anything else → 500)
2. This middleware is the catch-all for everything else, so no unhandled
   exception reaches the server as a bare crash

SECURITY CONSIDERATION:
-----------------------
Full details (stack trace, message) are logged server-side. Clients get a
generic message plus the request ID for correlation; tracebacks are only
included in development.
"""

import traceback
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agrotrack_cache.core.logging.logger import get_logger, get_request_id

logger = get_logger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Last line of defense for unhandled exceptions.

    Catches whatever the route handlers, the other middleware and the
    registered exception handlers let through.
    """

    def __init__(self, app, include_traceback: bool = False):
        """
        Args:
            app: The ASGI application
            include_traceback: Include stack traces in error responses
                (development only)
        """
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            method = request.method
            path = request.url.path
            error_type = type(e).__name__

            logger.error(
                f"Unhandled exception in request: {method} {path}",
                method=method,
                path=path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            error_response = {
                "success": False,
                "error": "An unexpected error occurred while processing your request",
                "error_type": error_type,
                "request_id": getattr(request.state, "request_id", None) or get_request_id(),
            }

            if self.include_traceback:
                error_response["traceback"] = traceback.format_exc()
                error_response["detail"] = str(e)

            return JSONResponse(status_code=500, content=error_response)


def add_error_handling_middleware(app, include_traceback: bool = False):
    """
    Add error handling middleware to the FastAPI application.

    Register it LAST so it wraps every other middleware (Starlette makes
    the most recently added middleware the outermost).

    Args:
        app: FastAPI application instance
        include_traceback: Whether to include stack traces in responses
    """
    app.add_middleware(ErrorHandlingMiddleware, include_traceback=include_traceback)
    logger.info("Error handling middleware registered", include_traceback=include_traceback)
