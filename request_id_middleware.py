"""Middleware giving every request an id that shows up in all of its log lines.

An incoming ``X-Request-ID`` (e.g. from a proxy) is reused; otherwise a new
hex UUID4 is generated. The id is echoed back in the response header.
"""
from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

MAX_INCOMING_ID_LENGTH = 64


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    def _request_id(self, request: Request) -> str:
        incoming = request.headers.get(self.header_name, "").strip()
        if incoming and len(incoming) <= MAX_INCOMING_ID_LENGTH:
            return incoming
        return uuid.uuid4().hex

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        request_id = self._request_id(request)
        bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
        request.state.request_id = request_id

        try:
            response: Response = await call_next(request)
        finally:
            # Contextvars must not leak into the next request on this worker
            clear_contextvars()

        response.headers[self.header_name] = request_id
        return response
