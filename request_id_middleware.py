"""FastAPI middleware to attach a unique X-Request-ID header to every request
and bind it into structlog contextvars so that all log lines emitted while
handling the request carry the same request_id.
"""
from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request_id to each request and log its outcome.

    An incoming X-Request-ID (e.g. from a load balancer) is reused, otherwise
    a UUID4 hex is generated.
    """

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        request_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
        request.state.request_id = request_id

        try:
            response: Response = await call_next(request)
            logger.info("Request handled", status_code=response.status_code)
        finally:
            # Avoid leaking bound values into the next request on this task
            clear_contextvars()

        response.headers[self.header_name] = request_id
        return response
