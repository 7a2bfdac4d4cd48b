"""
Shared error handling for the TinySteps backend.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    error: str


class ServiceException(Exception):
    """Base exception for backend services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to the uniform response envelope.

        ``details`` are merged into the envelope so that handlers can attach
        extra fields such as current usage on quota errors.
        """
        payload = ErrorResponse(error=self.message).model_dump()
        payload.update(self.details)
        return payload


class AuthenticationError(ServiceException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ValidationError(ServiceException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(ServiceException):
    """Unknown route or method."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class RateLimitError(ServiceException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, message: str = "Daily limit reached", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details)


class ExternalServiceError(ServiceException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)
