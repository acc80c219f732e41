"""Pydantic models for API request/response schemas."""

from certstore.models.common import ErrorResponse, HealthResponse, StrictBaseModel
from certstore.models.storage import (
    CleanupResponse,
    DeleteItem,
    DeleteRequest,
    DeleteResponse,
    MarkEmailedRequest,
    MarkEmailedResponse,
    StorageItem,
    StorageListResponse,
)

__all__ = [
    "CleanupResponse",
    "DeleteItem",
    "DeleteRequest",
    "DeleteResponse",
    "ErrorResponse",
    "HealthResponse",
    "MarkEmailedRequest",
    "MarkEmailedResponse",
    "StorageItem",
    "StorageListResponse",
    "StrictBaseModel",
]
