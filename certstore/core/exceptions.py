"""
Custom exceptions for CertStore.

All exceptions inherit from CertStoreError and include proper HTTP status codes
and error details for consistent API error responses.
"""

from typing import Any


class CertStoreError(Exception):
    """Base exception for all CertStore errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: Any = None,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message or self.message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.error_code,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CertStoreError):
    """Raised when the storage provider is unset or incompletely configured."""

    status_code = 400
    error_code = "CONFIGURATION_ERROR"
    message = "Storage provider is not properly configured"


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthorizationError(CertStoreError):
    """Raised when a protected operation is triggered without a valid secret."""

    status_code = 401
    error_code = "AUTHORIZATION_ERROR"
    message = "Unauthorized"


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(CertStoreError):
    """Raised when request validation fails."""

    status_code = 400
    error_code = "VALIDATION_ERROR"
    message = "Request validation failed"


class UnsafeKeyError(ValidationError):
    """Raised when a key lies outside the managed namespaces."""

    error_code = "UNSAFE_KEY"
    message = "Key is outside the managed namespaces"

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(
            message=f"Refusing to operate on key '{key}': {reason}",
            details={"key": key, "reason": reason},
        )
        self.key = key
        self.reason = reason


class UnrecognizedUrlError(ValidationError):
    """Raised when a file URL cannot be mapped back to a storage key."""

    error_code = "UNRECOGNIZED_URL"
    message = "URL does not belong to the active storage provider"

    def __init__(self, url: str) -> None:
        super().__init__(details={"url": url})
        self.url = url


# =============================================================================
# Resource Errors
# =============================================================================


class NotFoundError(CertStoreError):
    """Raised when a resource is not found."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class ObjectNotFoundError(NotFoundError):
    """Raised when an object is missing from storage."""

    error_code = "OBJECT_NOT_FOUND"
    message = "Object not found in storage"

    def __init__(self, key: str) -> None:
        super().__init__(
            message=f"Object not found: {key}",
            details={"key": key},
        )
        self.key = key


class ConflictError(CertStoreError):
    """Raised when the request conflicts with work already in progress."""

    status_code = 409
    error_code = "CONFLICT"
    message = "Conflicting operation in progress"


class CleanupInProgressError(ConflictError):
    """Raised when a cleanup run is already holding the lease."""

    error_code = "CLEANUP_IN_PROGRESS"
    message = "A cleanup run is already in progress"


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(CertStoreError):
    """Raised when a storage operation fails."""

    status_code = 500
    error_code = "STORAGE_ERROR"
    message = "Storage operation failed"


class TransportError(StorageError):
    """Raised on network or credential failures against a storage backend."""

    error_code = "TRANSPORT_ERROR"
    message = "Storage backend request failed"


class DataIntegrityError(CertStoreError):
    """Raised when stored metadata is missing or malformed."""

    status_code = 500
    error_code = "DATA_INTEGRITY_ERROR"
    message = "Object metadata is missing or invalid"


# =============================================================================
# Job Errors
# =============================================================================


class CleanupFailedError(CertStoreError):
    """Raised when a cleanup run fails before producing a report."""

    status_code = 500
    error_code = "CLEANUP_FAILED"
    message = "Cleanup failed"

    def __init__(self, reason: str) -> None:
        super().__init__(details=reason)
