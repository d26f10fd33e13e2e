"""HTTP middleware for request/response logging."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Slow request threshold in milliseconds
SLOW_REQUEST_THRESHOLD_MS = 1000

# Paths logged at DEBUG only
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each HTTP request with its status and time to response headers.

    For streamed chat turns the timing covers the wait for the first record,
    not the whole stream.

    Log levels:
    - DEBUG: Request start, health checks
    - INFO: Successful responses
    - WARNING: 4xx errors, slow requests (>1s)
    - ERROR: 5xx errors
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        user_id = request.headers.get("x-user-id", "-")
        logger.debug("%s %s user=%s", request.method, request.url.path, user_id)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._log_response(request, response, duration_ms, user_id)
        return response

    def _log_response(
        self, request: Request, response: Response, duration_ms: float, user_id: str
    ) -> None:
        method = request.method
        path = request.url.path
        status = response.status_code

        if status >= 500:
            level, suffix = logging.ERROR, ""
        elif status >= 400:
            level, suffix = logging.WARNING, ""
        elif duration_ms > SLOW_REQUEST_THRESHOLD_MS:
            level, suffix = logging.WARNING, " SLOW"
        elif path in QUIET_PATHS:
            level, suffix = logging.DEBUG, ""
        else:
            level, suffix = logging.INFO, ""

        logger.log(
            level, "%s %s -> %d (%.1fms) user=%s%s", method, path, status, duration_ms, user_id, suffix
        )
