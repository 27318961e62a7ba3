"""
Middleware for request processing, correlation ID tracking, and context management.

This module provides middleware for:
- Correlation ID generation and propagation
- Client session and request ID context
- Request/response logging
"""

import time
import uuid
import logging
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from video_snipper.utils import set_correlation_id, set_request_id, set_session_id

logger = logging.getLogger(__name__)

SESSION_HEADER = "x-session-id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle correlation ID generation and propagation.

    Every request gets a correlation ID, taken from the incoming header
    when present, and echoed back on the response.
    """

    def __init__(self, app: ASGIApp, header_name: str = "x-correlation-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.header_name) or str(uuid.uuid4())

        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers[self.header_name] = correlation_id
        return response


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Copies the client session and request IDs into the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id")
        if request_id:
            request.state.request_id = request_id
            set_request_id(request_id)

        session_id = request.headers.get(SESSION_HEADER)
        if session_id:
            set_session_id(session_id)

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured request/response logging.

    Logs request details, response status and timing. For streamed clips
    the timing covers the time to the first byte, not the whole transfer.
    """

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/api/health", "/docs", "/openapi.json"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        start_time = time.time()
        logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": str(request.url.path),
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed with exception",
                extra={
                    "exception_type": type(e).__name__,
                    "process_time": round(time.time() - start_time, 4),
                    "method": request.method,
                    "path": str(request.url.path),
                },
            )
            raise

        process_time = time.time() - start_time
        response.headers["x-process-time"] = str(round(process_time, 4))

        response_info = {
            "status_code": response.status_code,
            "process_time": round(process_time, 4),
            "method": request.method,
            "path": str(request.url.path),
        }
        if response.status_code >= 500:
            logger.error("Request completed with server error", extra=response_info)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=response_info)
        else:
            logger.info("Request completed successfully", extra=response_info)

        return response
