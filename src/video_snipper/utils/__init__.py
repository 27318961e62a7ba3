"""Utility modules for the Video Snipper application."""

from .error_utils import (
    set_correlation_id,
    peek_correlation_id,
    set_session_id,
    get_session_id,
    set_request_id,
    get_request_id,
    log_error,
    log_info,
    ErrorContext,
)

__all__ = [
    "set_correlation_id",
    "peek_correlation_id",
    "set_session_id",
    "get_session_id",
    "set_request_id",
    "get_request_id",
    "log_error",
    "log_info",
    "ErrorContext",
]
