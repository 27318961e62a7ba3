"""
Utility functions for error handling, logging, and context management.

This module provides helper functions for consistent error handling
and structured logging throughout the application.
"""

import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from video_snipper.exceptions import SnipperException

# Context variables for request tracking
correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='')
session_id_var: ContextVar[str] = ContextVar('session_id', default='')
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

logger = logging.getLogger(__name__)


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID in context."""
    correlation_id_var.set(correlation_id)


def peek_correlation_id() -> Optional[str]:
    """Get correlation ID from context without generating a new one."""
    return correlation_id_var.get() or None


def set_session_id(session_id: str) -> None:
    """Set client session ID in context."""
    session_id_var.set(session_id)


def get_session_id() -> Optional[str]:
    """Get client session ID from context."""
    return session_id_var.get() or None


def set_request_id(request_id: str) -> None:
    """Set request ID in context."""
    request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    """Get request ID from context."""
    return request_id_var.get() or None


def _base_context() -> Dict[str, Any]:
    return {
        "correlation_id": peek_correlation_id(),
        "session_id": get_session_id(),
        "request_id": get_request_id(),
    }


def log_error(
    exception: Exception,
    message: str = None,
    extra_context: Dict[str, Any] = None,
    include_traceback: bool = True
) -> None:
    """
    Log an error with structured context information.

    Args:
        exception: The exception that occurred
        message: Optional custom message
        extra_context: Additional context to include in logs
        include_traceback: Whether to include full traceback
    """
    context = _base_context()
    context.update({
        "exception_type": type(exception).__name__,
        "exception_message": str(exception),
    })

    if extra_context:
        context.update(extra_context)

    if isinstance(exception, SnipperException):
        context["error_data"] = exception.to_dict()

    log_message = message or f"Error occurred: {type(exception).__name__}"

    logger.error(
        log_message,
        extra=context,
        exc_info=include_traceback
    )


def log_info(
    message: str,
    extra_context: Dict[str, Any] = None
) -> None:
    """Log an info message with structured context information."""
    context = _base_context()
    if extra_context:
        context.update(extra_context)

    logger.info(message, extra=context)


class ErrorContext:
    """
    Context manager for error handling with automatic logging.

    Usage:
        with ErrorContext("video_ingest", session_id="abc"):
            # Your code here
            pass
    """

    def __init__(
        self,
        operation: str,
        log_entry: bool = True,
        log_exit: bool = True,
        **context_kwargs
    ):
        self.operation = operation
        self.log_entry = log_entry
        self.log_exit = log_exit
        self.context = context_kwargs

    def __enter__(self) -> "ErrorContext":
        if self.log_entry:
            log_info(f"Starting {self.operation}", extra_context=self.context)
        return self

    def __exit__(self, exc_type: Optional[type], exc_val: Optional[Exception], exc_tb: Optional[Any]) -> bool:
        if exc_type is not None:
            # Expected client-facing failures are logged without a traceback
            log_error(
                exc_val,
                f"Error in {self.operation}",
                extra_context=self.context,
                include_traceback=not isinstance(exc_val, SnipperException),
            )
        elif self.log_exit:
            log_info(f"Completed {self.operation}", extra_context=self.context)

        return False  # Don't suppress exceptions
