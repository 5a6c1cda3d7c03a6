from __future__ import annotations

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger

from .request_context import REQUEST_ID_HEADER
from .schemas import ErrorResponse


def _serialize_detail(detail: object) -> str | None:
    if detail is None:
        return None
    return str(detail)


def error_response(
    status_code: int,
    message: str,
    detail: object,
    request_id: str | None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(message=message, detail=_serialize_detail(detail), request_id=request_id)
    response = JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True), headers=headers)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    message = str(exc.detail) if exc.detail else exc.__class__.__name__
    return error_response(exc.status_code, message=message, detail=None, request_id=request_id, headers=exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path} (request {request_id})")
    # Internals stay in the log; clients only get the request id to quote.
    return error_response(500, message="Internal Server Error", detail=None, request_id=request_id)
