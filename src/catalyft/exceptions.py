"""
Custom exceptions for the Catalyft coaching backend.

Every function handler reports failures through this hierarchy. Each
exception carries:
- A human-readable message (returned to the caller as ``error``)
- An error code for clients that branch on failure type
- The HTTP status code the handler responds with
- Optional details for debugging
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for consistent API error responses."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Domain lookups
    ATHLETE_NOT_FOUND = "ATHLETE_NOT_FOUND"
    PROGRAM_NOT_FOUND = "PROGRAM_NOT_FOUND"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Wearables
    WEARABLE_SYNC_FAILED = "WEARABLE_SYNC_FAILED"

    # LLM errors
    LLM_SERVICE_UNAVAILABLE = "LLM_SERVICE_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_RESPONSE_INVALID = "LLM_RESPONSE_INVALID"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_API_ERROR = "LLM_API_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"


class CatalyftError(Exception):
    """
    Base exception for all Catalyft errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code for API responses
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the function error body."""
        result: Dict[str, Any] = {
            "error": self.message,
            "code": self.code.value,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Request Errors (400 / 401 / 403 / 405)
# ============================================================================

class ValidationError(CatalyftError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=error_details,
        )


class AuthenticationError(CatalyftError):
    """Raised when the caller is not authenticated."""

    def __init__(
        self,
        message: str = "Unauthorized",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.UNAUTHORIZED,
            status_code=401,
            details=details,
        )


class ForbiddenError(CatalyftError):
    """Raised when a role or ownership check fails."""

    def __init__(
        self,
        message: str = "Forbidden",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.FORBIDDEN,
            status_code=403,
            details=details,
        )


class MethodNotAllowedError(CatalyftError):
    """Raised when a function is called with an unsupported HTTP method."""

    def __init__(self, method: str) -> None:
        super().__init__(
            message="Method not allowed",
            code=ErrorCode.METHOD_NOT_ALLOWED,
            status_code=405,
            details={"method": method},
        )


# ============================================================================
# Not Found Errors (404)
# ============================================================================

class NotFoundError(CatalyftError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> None:
        message = message or f"{resource_type} not found"
        error_details = details or {}
        error_details["resource_type"] = resource_type
        error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            status_code=404,
            details=error_details,
        )


class AthleteNotFoundError(NotFoundError):
    """Raised when an athlete or profile is not found."""

    def __init__(self, athlete_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(resource_type="Athlete", resource_id=athlete_id, details=details)
        self.code = ErrorCode.ATHLETE_NOT_FOUND


class ProgramNotFoundError(NotFoundError):
    """Raised when a program instance is not found."""

    def __init__(self, program_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(resource_type="Program", resource_id=program_id, details=details)
        self.code = ErrorCode.PROGRAM_NOT_FOUND


class TemplateNotFoundError(NotFoundError):
    """Raised when a program template is not found."""

    def __init__(self, template_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(resource_type="Template", resource_id=template_id, details=details)
        self.code = ErrorCode.TEMPLATE_NOT_FOUND


class SessionNotFoundError(NotFoundError):
    """Raised when a training session is not found."""

    def __init__(
        self,
        session_id: str,
        details: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(resource_type="Session", resource_id=session_id, details=details, message=message)
        self.code = ErrorCode.SESSION_NOT_FOUND


# ============================================================================
# Wearable Errors
# ============================================================================

class WearableSyncError(CatalyftError):
    """Raised when a wearable sync cannot complete for an athlete."""

    def __init__(
        self,
        message: str,
        provider: str = "whoop",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["provider"] = provider
        super().__init__(
            message=message,
            code=ErrorCode.WEARABLE_SYNC_FAILED,
            status_code=400,
            details=error_details,
        )


# ============================================================================
# LLM Service Errors
# ============================================================================

class LLMError(CatalyftError):
    """Base class for LLM-related errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_API_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            details=details,
        )


class LLMServiceUnavailableError(LLMError):
    """Raised when the LLM service is unavailable."""

    def __init__(
        self,
        message: str = "LLM service is currently unavailable",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.LLM_SERVICE_UNAVAILABLE,
            status_code=503,
            details=details,
        )


class LLMRateLimitError(LLMError):
    """Raised when LLM rate limits are hit."""

    def __init__(
        self,
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if retry_after:
            error_details["retry_after_seconds"] = retry_after
        super().__init__(
            message="LLM service rate limit exceeded. Please try again later.",
            code=ErrorCode.LLM_RATE_LIMITED,
            status_code=429,
            details=error_details,
        )


class LLMTimeoutError(LLMError):
    """Raised when LLM request times out."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if timeout_seconds:
            error_details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message="LLM request timed out",
            code=ErrorCode.LLM_TIMEOUT,
            status_code=504,
            details=error_details,
        )


class LLMResponseInvalidError(LLMError):
    """Raised when the LLM returns an empty or unusable response."""

    def __init__(
        self,
        message: str = "Invalid response from LLM",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.LLM_RESPONSE_INVALID,
            status_code=502,
            details=details,
        )


# ============================================================================
# Database Errors
# ============================================================================

class DatabaseError(CatalyftError):
    """Raised when a database operation fails."""

    def __init__(
        self,
        message: str = "Database operation failed",
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if operation:
            error_details["operation"] = operation
        super().__init__(
            message=message,
            code=ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=error_details,
        )
