"""
FastAPI middleware for request correlation ID tracking.

Every sync triggered over HTTP gets a correlation id that shows up in all
adapter, matcher and reconciler log lines for that request.
"""
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from gamelib.core.logging import set_correlation_id, clear_correlation_id, get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Read or generate X-Correlation-ID and expose it to logs and the response.

    Usage:
        app.add_middleware(CorrelationIdMiddleware)
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id

            logger.debug(
                f"Request completed: {request.method} {request.url.path}",
                extra={"method": request.method, "path": request.url.path, "status": response.status_code},
            )
            return response
        finally:
            clear_correlation_id(token)
