"""
Exception handlers for the FastAPI application.

Every failure leaving a route is rendered as the standard error envelope
in the caller's language.
"""

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api_exceptions import ErrorKind, TourismAPIError, field_error, validation_error, wrap_unexpected

logger = logging.getLogger(__name__)


def _extract_validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Map pydantic errors onto field errors"""
    errors = []
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"][1:])  # Skip 'body'
        code = "FIELD_REQUIRED" if error["type"] == "missing" else "INVALID_FORMAT"
        errors.append(field_error(field_path or "body", code))
    return errors


def _render(request: Request, error: TourismAPIError) -> JSONResponse:
    context = request.app.state.context
    request_context = getattr(request.state, "request_context", None)
    headers = {}
    if error.kind == ErrorKind.RATE_LIMIT and "retryAfter" in error.details:
        headers["Retry-After"] = str(error.details["retryAfter"])
    return JSONResponse(
        status_code=error.status_code,
        content=context.formatter.format_error(error, request_context),
        headers=headers,
    )


async def tourism_api_exception_handler(request: Request, exc: TourismAPIError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    request.app.state.context.metrics.record_error(exc.kind.value, "api")
    return _render(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body or query failed schema validation"""
    error = validation_error(_extract_validation_errors(exc))
    logger.info(f"Request validation failed for {request.url.path}: {error.field_errors}")
    request.app.state.context.metrics.record_error(error.kind.value, "api")
    return _render(request, error)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = TourismAPIError(
        ErrorKind.NOT_FOUND if exc.status_code == 404 else ErrorKind.HTTP,
        status_code=exc.status_code,
        details={"path": request.url.path},
        message=None if exc.status_code == 404 else str(exc.detail),
    )
    return _render(request, error)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    error = wrap_unexpected(exc)
    request.app.state.context.metrics.record_error(error.kind.value, "api")
    return _render(request, error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TourismAPIError, tourism_api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
