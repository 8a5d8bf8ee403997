# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors should tell HOW to fix, not just WHAT failed.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class EduFiliovaException(Exception):
    """
    Base exception for the EduFiliova realtime API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "EDUFILIOVA_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Access Exceptions
# =============================================================================

class AccessDeniedError(EduFiliovaException):
    """Raised when a user touches another user's learner data."""

    def __init__(self, user_id: str):
        super().__init__(
            message="Access denied",
            code="ACCESS_DENIED",
            status_code=403,
            suggestion="Learner data can only be read or changed by its owner",
            details={"user_id": user_id}
        )


# =============================================================================
# Learner Data Exceptions
# =============================================================================

class LearnerDataError(EduFiliovaException):
    """Raised when the persistent store fails a learner data operation."""

    def __init__(self, operation: str, user_id: str, error: str):
        super().__init__(
            message=f"Failed to {operation}",
            code="LEARNER_DATA_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"user_id": user_id, "error": error}
        )


# =============================================================================
# Realtime Exceptions
# =============================================================================

class InvalidFrameError(EduFiliovaException):
    """Raised when an inbound WebSocket frame cannot be parsed."""

    def __init__(self, error: str):
        super().__init__(
            message="Failed to process message",
            code="INVALID_FRAME",
            status_code=400,
            suggestion="Send one JSON object per message with a known 'type' field",
            details={"error": error}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def edufiliova_exception_handler(
    request: Request,
    exc: EduFiliovaException
) -> JSONResponse:
    """
    Convert EduFiliovaException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
