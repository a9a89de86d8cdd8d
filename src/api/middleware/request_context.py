"""Correlation and request ids for every request.

The correlation id is taken from ``X-Correlation-ID`` when a caller sends one
and generated otherwise; the request id is always local. Both are stored in
contextvars, bound to Loguru records and echoed in response headers.
"""

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.core.constants import CORRELATION_ID_HEADER, REQUEST_ID_HEADER
from src.core.context import (
    RequestContext,
    generate_correlation_id,
    generate_request_id,
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = (
            request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        )
        request_id = generate_request_id()
        RequestContext.set_correlation_id(correlation_id)
        RequestContext.set_request_id(request_id)

        with logger.contextualize(correlation_id=correlation_id, request_id=request_id):
            response = await call_next(request)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
