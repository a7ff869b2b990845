"""
Custom Exception Classes for consentgate

This module defines custom exceptions for better error handling and
consistent error responses across the application.

Consent persistence problems (corrupt cookies, rejected cookie writes,
failed audit inserts) are deliberately NOT modelled as exceptions: they are
reported as booleans and resolved fail-closed. The exceptions below cover
request-level failures only.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the error envelope."""

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    CSRF_FAILED = "CSRF_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_ACTION = "VALIDATION_INVALID_ACTION"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ConsentGateError(Exception):
    """Base exception class for all consentgate exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(ConsentGateError):
    """Raised when the admin API key is missing or wrong"""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=ErrorCode.AUTH_FAILED,
        )


class CSRFError(ConsentGateError):
    """Raised when CSRF validation fails"""

    def __init__(self, message: str = "CSRF validation failed"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN, error_code=ErrorCode.CSRF_FAILED)


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(ConsentGateError):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=error_details,
        )


class InvalidActionTypeError(ConsentGateError):
    """Raised when a save request carries an action type visitors may not submit"""

    def __init__(self, action_type: str, allowed: list[str]):
        super().__init__(
            message=f"Action type '{action_type}' is not allowed",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_INVALID_ACTION,
            details={"action_type": action_type, "allowed": allowed},
        )


# ============================================================================
# Resource & Database Exceptions
# ============================================================================


class ResourceNotFoundError(ConsentGateError):
    """Raised when a lookup matches nothing"""

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ConsentLogNotFoundError(ResourceNotFoundError):
    """Raised when no audit rows match a GDPR lookup"""

    def __init__(self, consent_id: str | None = None):
        super().__init__(resource_type="Consent log", resource_id=consent_id)


class DatabaseError(ConsentGateError):
    """Raised when a database operation fails"""

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=ErrorCode.DATABASE_ERROR,
            details=details,
        )


# ============================================================================
# Rate Limiting Exceptions
# ============================================================================


class RateLimitExceededError(ConsentGateError):
    """Raised when rate limit is exceeded"""

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
        )
