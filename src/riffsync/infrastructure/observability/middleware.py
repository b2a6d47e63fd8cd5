"""Per-request access log and correlation id propagation."""

import logging
from collections.abc import Awaitable, Callable
from time import perf_counter

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from riffsync.infrastructure.observability import logging as obs_logging

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me - the correlation id set here is the one the album sync picks up,
# so one API call and all the track work it triggers share a single id in the logs.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request and echo the correlation id back."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        obs_logging.set_correlation_id(request.headers.get(CORRELATION_HEADER))
        fields: dict[str, object] = {
            "method": request.method,
            "path": request.url.path,
        }
        route = f"{request.method} {request.url.path}"
        started = perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            fields["error_type"] = type(e).__name__
            logger.exception(f"Request failed: {route}", extra=fields)
            raise

        elapsed_ms = int((perf_counter() - started) * 1000)
        response.headers[CORRELATION_HEADER] = obs_logging.get_correlation_id()

        marker = "✗" if response.status_code >= 400 else "✓"
        fields.update(status_code=response.status_code, duration_ms=elapsed_ms)
        logger.info(f"{marker} {route} → {response.status_code} ({elapsed_ms}ms)", extra=fields)
        return response
