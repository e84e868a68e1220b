"""
Custom exceptions for the Session Recorder API.

All exceptions inherit from SessionRecorderError and include proper HTTP status
codes and error details for consistent API error responses.
"""

from typing import Any


class SessionRecorderError(Exception):
    """Base exception for all Session Recorder API errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message or self.message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Resource Errors
# =============================================================================


class NotFoundError(SessionRecorderError):
    """Raised when a resource is not found."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class BlobNotFoundError(NotFoundError):
    """Raised when a requested blob does not exist."""

    error_code = "BLOB_NOT_FOUND"
    message = "Blob not found"

    def __init__(self, path: str) -> None:
        super().__init__(
            message=f"Blob '{path}' not found",
            details={"path": path},
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SessionRecorderError):
    """Raised when request validation fails."""

    status_code = 422
    error_code = "VALIDATION_ERROR"
    message = "Request validation failed"


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(SessionRecorderError):
    """Raised when storage operation fails."""

    status_code = 500
    error_code = "STORAGE_ERROR"
    message = "Storage operation failed"


class ConfigurationError(StorageError):
    """Raised when storage is not set up: mode or credentials missing/invalid."""

    status_code = 503
    error_code = "STORAGE_NOT_CONFIGURED"
    message = "Storage is not configured"

    def __init__(
        self,
        message: str | None = None,
        missing_keys: list[str] | None = None,
    ) -> None:
        self.missing_keys = list(missing_keys or [])
        super().__init__(
            message=message,
            details={"missing_keys": self.missing_keys},
        )


class BackendError(StorageError):
    """Raised when the remote object storage API rejects or fails a request."""

    status_code = 502
    error_code = "STORAGE_BACKEND_ERROR"
    message = "Storage backend request failed"

    def __init__(
        self,
        message: str | None = None,
        status: int | None = None,
        body: str = "",
        operation: str | None = None,
    ) -> None:
        self.status = status
        self.body = body
        self.operation = operation
        super().__init__(
            message=message,
            details={"status": status, "body": body, "operation": operation},
        )
