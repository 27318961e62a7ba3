"""Schema definitions for the Video Snipper application."""

from .api import (
    SnipRequest,
    UploadResponse,
    CleanupResponse,
    HealthResponse,
)
from .error import (
    ErrorDetail,
    ErrorResponse,
    ValidationErrorResponse,
)

__all__ = [
    "SnipRequest",
    "UploadResponse",
    "CleanupResponse",
    "HealthResponse",
    "ErrorDetail",
    "ErrorResponse",
    "ValidationErrorResponse",
]
