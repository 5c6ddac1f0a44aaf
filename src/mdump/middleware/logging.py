"""Access logging for API requests."""
import time
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

SILENT_PREFIXES: tuple[str, ...] = (
    "/api/v1/health/",
    "/api/v1/events/stream",
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emits one "http_request" event per request.

    Health probes and SSE streams are not logged. Server errors are
    logged at error level, client errors at warning level.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        path = request.url.path
        if path.startswith(SILENT_PREFIXES):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        status = response.status_code
        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info

        log(
            "http_request",
            method=request.method,
            path=path,
            query=request.url.query or None,
            status=status,
            duration_ms=elapsed_ms,
        )
        return response
