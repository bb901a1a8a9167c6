"""
Request logging middleware
==========================
One JSON line per request (request id, route, status, duration), written to
a rotating file under the configured log directory.
"""

import json
import logging
import os
import time
import uuid
from logging.handlers import RotatingFileHandler

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ... import config

_logger = logging.getLogger("photorefine.requests")
_logger.setLevel(logging.INFO)
_logger.propagate = False

_QUIET_PATHS = ("/health", "/favicon.ico")


def configure_request_log(log_dir: str = config.LOG_DIR) -> str:
    """Attach the rotating JSON-lines handler (once). Returns the log path."""
    path = os.path.join(log_dir, "requests.jsonl")
    for handler in _logger.handlers:
        if getattr(handler, "baseFilename", None) == os.path.abspath(path):
            return path

    os.makedirs(log_dir, exist_ok=True)
    # 10MB max, 5 backups
    handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    _logger.addHandler(handler)
    return path


def _entry(request: Request, request_id: str, status: int, duration_ms: float) -> dict:
    return {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "rid": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": status,
        "ms": duration_ms,
        "ip": request.client.host if request.client else "unknown",
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs it with its duration."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        start = time.time()

        try:
            response = await call_next(request)
        except Exception as exc:
            entry = _entry(request, request_id, 500, round((time.time() - start) * 1000, 1))
            entry["error"] = str(exc)[:200]
            _logger.info(json.dumps(entry))
            raise

        duration_ms = round((time.time() - start) * 1000, 1)
        if request.url.path not in _QUIET_PATHS:
            _logger.info(json.dumps(_entry(request, request_id, response.status_code, duration_ms)))

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        return response
