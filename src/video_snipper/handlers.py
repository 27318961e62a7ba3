"""
Global exception handlers for the FastAPI application.

Every failure is rendered as the same JSON envelope: error code, failure
kind, message and correlation id. Tracebacks and filesystem paths never
leave the process; they only go to the logs.
"""

import logging
from datetime import datetime, timezone
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from video_snipper.exceptions import (
    ErrorCode,
    ErrorKind,
    FetchLimitException,
    NotFoundException,
    PayloadTooLargeException,
    ProcessingException,
    SnipperException,
    UnsupportedMediaTypeException,
    UpstreamException,
    ValidationException,
)
from video_snipper.schemas.error import ErrorDetail, ErrorResponse, ValidationErrorResponse

logger = logging.getLogger(__name__)

_STATUS_BY_TYPE = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (NotFoundException, status.HTTP_404_NOT_FOUND),
    (UpstreamException, status.HTTP_502_BAD_GATEWAY),
    (FetchLimitException, status.HTTP_408_REQUEST_TIMEOUT),
    (PayloadTooLargeException, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (UnsupportedMediaTypeException, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE),
    (ProcessingException, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def get_correlation_id(request: Request) -> str:
    """Extract correlation ID stored on the request by the middleware."""
    return getattr(request.state, "correlation_id", "unknown")


def status_code_for(exc: SnipperException) -> int:
    """Map custom exceptions to HTTP status codes."""
    for exc_type, code in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def snipper_exception_handler(request: Request, exc: SnipperException) -> JSONResponse:
    """Convert a ``SnipperException`` into a structured JSON response."""
    status_code = status_code_for(exc)

    error_response = ErrorResponse(
        error_code=exc.error_code.value,
        kind=exc.kind.value,
        message=exc.message,
        details=exc.details or None,
        correlation_id=get_correlation_id(request),
        timestamp=datetime.fromisoformat(exc.timestamp),
        path=str(request.url.path),
        method=request.method,
    )

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Application error: {exc.error_code.value}",
        extra={
            "error_data": exc.to_dict(),
            "request_path": str(request.url.path),
            "request_method": request.method,
            "status_code": status_code,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle FastAPI body/query validation errors with field information."""
    validation_errors = [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]

    error_response = ValidationErrorResponse(
        error_code=ErrorCode.VALIDATION_ERROR.value,
        kind=ErrorKind.VALIDATION.value,
        message="Validation failed",
        correlation_id=get_correlation_id(request),
        timestamp=datetime.now(timezone.utc),
        path=str(request.url.path),
        method=request.method,
        validation_errors=validation_errors,
    )

    logger.warning(
        "Validation error",
        extra={
            "validation_errors": [err.model_dump() for err in validation_errors],
            "request_path": str(request.url.path),
            "request_method": request.method,
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle standard HTTP exceptions, e.g. unknown routes."""
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP error"
    if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
        detail = "Endpoint not found"

    error_response = ErrorResponse(
        error_code=f"HTTP{exc.status_code}",
        kind=ErrorKind.NOT_FOUND.value if exc.status_code == 404 else ErrorKind.INTERNAL.value,
        message=detail,
        correlation_id=get_correlation_id(request),
        timestamp=datetime.now(timezone.utc),
        path=str(request.url.path),
        method=request.method,
    )

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"HTTP {exc.status_code} error",
        extra={
            "status_code": exc.status_code,
            "detail": detail,
            "request_path": str(request.url.path),
            "request_method": request.method,
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with a generic error response."""
    error_response = ErrorResponse(
        error_code=ErrorCode.INTERNAL_SERVER_ERROR.value,
        kind=ErrorKind.INTERNAL.value,
        message="Internal server error",
        correlation_id=get_correlation_id(request),
        timestamp=datetime.now(timezone.utc),
        path=str(request.url.path),
        method=request.method,
    )

    logger.error(
        "Unhandled exception",
        extra={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "request_path": str(request.url.path),
            "request_method": request.method,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(SnipperException, snipper_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
