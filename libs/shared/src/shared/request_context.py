from __future__ import annotations

import time
from typing import Awaitable, Callable
from uuid import uuid4

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_ID_HEADER = "x-request-id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ``x-request-id`` and log its outcome and latency."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        logger.bind(request_id=request_id).info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.2f}ms"
        )
        return response
