"""Middleware for request correlation ID propagation."""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from chat_orchestrator.platform.observability.logging import correlation_id_ctx

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
        return incoming
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware that extracts or generates correlation IDs for request tracing.

    The X-Request-ID header is reused when present and reasonably sized,
    otherwise a UUID is generated. The ID is stored in a context variable for
    the structured logging system and echoed back in the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = _request_id(request)
        token = correlation_id_ctx.set(correlation_id)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = correlation_id
            return response
        finally:
            correlation_id_ctx.reset(token)
