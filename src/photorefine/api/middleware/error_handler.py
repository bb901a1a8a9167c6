"""
Error handling
==============
Consistent JSON error bodies carrying the request id.

InputError (bad image, bad slider, unknown mode) → 400.
Anything unhandled → 500, logged with its traceback.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ...core.errors import InputError

logger = logging.getLogger(__name__)


def error_body(request: Request, error: str, message: str) -> dict:
    return {
        "error": error,
        "message": message[:500],
        "request_id": getattr(request.state, "request_id", "unknown"),
        "path": request.url.path,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    }


async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error_body(request, "invalid_input", str(exc)))


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catches unhandled exceptions → structured JSON error response."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(
                f"{getattr(request.state, 'request_id', 'unknown')} "
                f"{request.method} {request.url.path}: {exc}"
            )
            return JSONResponse(
                status_code=500,
                content=error_body(request, "internal_server_error", str(exc)),
            )
