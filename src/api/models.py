#!/usr/bin/env python3
"""
API Models for Request/Response Validation

Pydantic models for the error envelope shared by every middleware and
route, and for the request log listing returned by the read API.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: ErrorCode = Field(..., description="Standardized error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    trace_id: Optional[str] = Field(None, description="Request trace ID for debugging")


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: ErrorDetail = Field(..., description="Error details")


class RequestLogsResponse(BaseModel):
    """
    Page of request logs, newest first.

    ``total`` counts the entries in ``logs``, which is the page after the
    resource filter has been applied, not the number of matches in the index.
    """
    logs: List[Dict[str, Any]] = Field(default_factory=list, description="Raw search hits")
    total: int = Field(..., ge=0, description="Number of entries in logs")
    took: int = Field(..., ge=0, description="Search latency reported by Elasticsearch (ms)")


__all__ = [
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "RequestLogsResponse",
]
