"""
Custom exception hierarchy for the Video Snipper application.

Every failure the clip pipeline can surface maps to one of these classes.
Each carries a stable error code, a machine-readable ``kind`` and a
human-readable message; the HTTP handlers turn them into structured
error responses without exposing tracebacks or filesystem paths.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Enumeration of error codes for consistent error identification."""

    # General errors (1000-1999)
    INTERNAL_SERVER_ERROR = "VS1000"
    VALIDATION_ERROR = "VS1001"

    # Video errors (3000-3999)
    VIDEO_NOT_FOUND = "VS3000"
    REMOTE_VIDEO_NOT_FOUND = "VS3001"
    VIDEO_PROCESSING_FAILED = "VS3002"
    UNSUPPORTED_MEDIA_TYPE = "VS3003"
    PAYLOAD_TOO_LARGE = "VS3004"

    # Upstream errors (5000-5999)
    UPSTREAM_ERROR = "VS5000"
    FETCH_TIMEOUT = "VS5001"
    FETCH_SIZE_EXCEEDED = "VS5002"


class ErrorKind(str, Enum):
    """Caller-facing failure categories."""

    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"
    UPSTREAM = "UpstreamError"
    TIMEOUT = "TimeoutError"
    PROCESSING = "ProcessingError"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    UNSUPPORTED_MEDIA_TYPE = "UnsupportedMediaType"
    INTERNAL = "InternalError"


class SnipperException(Exception):
    """
    Base exception class for all Video Snipper exceptions.

    Provides structured error information including error codes,
    correlation IDs, and contextual metadata.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if correlation_id is None:
            # Imported here; error_utils imports this module
            from video_snipper.utils.error_utils import peek_correlation_id
            correlation_id = peek_correlation_id()
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_code": self.error_code.value,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp,
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class ValidationException(SnipperException):
    """Exception raised for invalid clip or upload requests."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["invalid_value"] = str(value)

        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details,
            **kwargs
        )


# Not-found exceptions
class NotFoundException(SnipperException):
    """Base class for unknown local or remote video references."""

    kind = ErrorKind.NOT_FOUND


class VideoNotFoundException(NotFoundException):
    """Raised when a video id is not (or no longer) in the session store."""

    def __init__(self, video_id: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            message=message or "Uploaded video not found in session",
            error_code=ErrorCode.VIDEO_NOT_FOUND,
            details={"video_id": video_id},
            **kwargs
        )


class RemoteVideoNotFoundException(NotFoundException):
    """Raised when the remote source answers with a 4xx status."""

    def __init__(self, status_code: int, message: Optional[str] = None, **kwargs):
        super().__init__(
            message=message or f"Remote video could not be retrieved (HTTP {status_code})",
            error_code=ErrorCode.REMOTE_VIDEO_NOT_FOUND,
            details={"status_code": status_code},
            **kwargs
        )


# Upstream exceptions
class UpstreamException(SnipperException):
    """Raised for remote 5xx answers and network failures."""

    kind = ErrorKind.UPSTREAM

    def __init__(
        self,
        message: str = "Remote video source is unreachable",
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            error_code=ErrorCode.UPSTREAM_ERROR,
            details=details,
            **kwargs
        )


class FetchLimitException(SnipperException):
    """Base class for remote fetches that exceeded a time or size bound."""

    kind = ErrorKind.TIMEOUT


class FetchTimeoutException(FetchLimitException):
    """Raised when a remote download exceeds its time budget."""

    def __init__(self, timeout_seconds: float, **kwargs):
        super().__init__(
            message="Request timeout - video too large or slow to download",
            error_code=ErrorCode.FETCH_TIMEOUT,
            details={"timeout_seconds": timeout_seconds},
            **kwargs
        )


class FetchSizeExceededException(FetchLimitException):
    """Raised when a remote download transfers more than the byte ceiling."""

    def __init__(self, max_bytes: int, received_bytes: Optional[int] = None, **kwargs):
        details = {"max_bytes": max_bytes}
        if received_bytes is not None:
            details["received_bytes"] = received_bytes

        super().__init__(
            message=f"Remote video exceeds the maximum size of {max_bytes} bytes",
            error_code=ErrorCode.FETCH_SIZE_EXCEEDED,
            details=details,
            **kwargs
        )


# Media engine exceptions
class ProcessingException(SnipperException):
    """Raised when the media-cutting engine fails."""

    kind = ErrorKind.PROCESSING

    def __init__(
        self,
        message: str = "Video processing failed",
        return_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if return_code is not None:
            details["return_code"] = return_code

        super().__init__(
            message=message,
            error_code=ErrorCode.VIDEO_PROCESSING_FAILED,
            details=details,
            **kwargs
        )


# Ingest-time rejections
class PayloadTooLargeException(SnipperException):
    """Raised when an upload is larger than the ingest ceiling."""

    kind = ErrorKind.PAYLOAD_TOO_LARGE

    def __init__(self, max_bytes: int, **kwargs):
        super().__init__(
            message=f"File too large. Maximum size is {max_bytes // (1024 ** 3)}GB.",
            error_code=ErrorCode.PAYLOAD_TOO_LARGE,
            details={"max_bytes": max_bytes},
            **kwargs
        )


class UnsupportedMediaTypeException(SnipperException):
    """Raised when an upload does not declare a video MIME type."""

    kind = ErrorKind.UNSUPPORTED_MEDIA_TYPE

    def __init__(self, mime_type: Optional[str], **kwargs):
        super().__init__(
            message="Only video files are allowed",
            error_code=ErrorCode.UNSUPPORTED_MEDIA_TYPE,
            details={"mime_type": mime_type},
            **kwargs
        )
