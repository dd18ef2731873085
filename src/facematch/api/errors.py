"""Translate failures into the API error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from facematch.api.schemas import ErrorDetail, ErrorResponse
from facematch.errors import FaceMatchError

logger = logging.getLogger(__name__)

HTTP_ERROR_TYPES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: "file_too_large",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "validation_error",
}


def _error_response(
    status_code: int, error_type: str, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(type=error_type, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def handle_face_match_error(request: Request, exc: FaceMatchError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s on %s: %s", exc.kind, request.url.path, exc)
    else:
        logger.info("%s on %s: %s", exc.kind, request.url.path, exc)
    return _error_response(exc.status_code, str(exc.kind), str(exc))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_type = HTTP_ERROR_TYPES.get(exc.status_code, "http_error")
    return _error_response(exc.status_code, error_type, str(exc.detail), headers=exc.headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg', 'invalid')}" if location else str(err.get("msg", "invalid")))
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        HTTP_ERROR_TYPES[status.HTTP_422_UNPROCESSABLE_ENTITY],
        "; ".join(problems) or "Invalid request",
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FaceMatchError, handle_face_match_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, handle_http_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
