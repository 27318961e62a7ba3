"""
Error response schemas for structured API error responses.

This module defines Pydantic models for consistent error response formatting
across all API endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Individual error detail for validation errors."""

    field: Optional[str] = Field(None, description="Field that caused the error")
    message: str = Field(..., description="Error message")
    code: Optional[str] = Field(None, description="Error code")


class ErrorResponse(BaseModel):
    """Standard error response model for all API errors."""

    error_code: str = Field(..., description="Unique error code for identification")
    kind: str = Field(..., description="Machine-readable failure category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error context and metadata"
    )
    correlation_id: str = Field(..., description="Unique correlation ID for request tracking")
    timestamp: datetime = Field(..., description="Error occurrence timestamp")
    path: Optional[str] = Field(None, description="API path where error occurred")
    method: Optional[str] = Field(None, description="HTTP method used")


class ValidationErrorResponse(ErrorResponse):
    """Extended error response for request validation errors."""

    validation_errors: List[ErrorDetail] = Field(
        default_factory=list,
        description="List of validation error details"
    )
