"""
Shared error handling for the Directory service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class DirectoryException(Exception):
    """Base exception for Directory services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class BadRequestError(DirectoryException):
    """Missing or invalid request input."""

    status_code = 400

    def __init__(self, message: str = "Missing required fields", details: Optional[Dict[str, Any]] = None):
        super().__init__("BAD_REQUEST", message, details)


class ConflictError(DirectoryException):
    """A record with the same name already exists."""

    status_code = 409

    def __init__(self, message: str = "Record already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT", message, details)


class NotFoundError(DirectoryException):
    """No record with the requested name."""

    status_code = 404

    def __init__(self, message: str = "Record not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class InternalError(DirectoryException):
    """The durable store failed a request."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", details: Optional[Dict[str, Any]] = None):
        super().__init__("INTERNAL_ERROR", message, details)


class StoreError(DirectoryException):
    """Record store backend failure."""

    status_code = 500

    def __init__(self, operation: str, message: str = "Record store error", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("STORE_ERROR", f"{operation}: {message}", details)


class CacheError(DirectoryException):
    """Cache backend failure. Always recovered inside the service layer."""

    def __init__(self, operation: str, message: str = "Cache error", details: Optional[Dict[str, Any]] = None,
                 code: str = "CACHE_ERROR"):
        self.operation = operation
        super().__init__(code, f"{operation}: {message}", details)


class CacheKeyNotFoundError(CacheError):
    """Cache delete addressed a key that does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("delete", f"key not found: {key}", {"key": key}, code="CACHE_KEY_NOT_FOUND")
