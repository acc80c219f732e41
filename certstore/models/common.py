"""
Common Pydantic models shared by every router.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StrictBaseModel(BaseModel):
    """Base model with strict configuration."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorResponse(BaseModel):
    """Error body returned by every failing request."""

    error: str = Field(..., description="Human readable error message")
    code: str = Field(..., description="Stable machine-readable error code")
    details: Any = Field(default=None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="healthy or degraded")
    version: str = Field(..., description="API version")
    storage_provider: str = Field(..., alias="storageProvider")
    storage_configured: bool = Field(..., alias="storageConfigured")

    model_config = ConfigDict(populate_by_name=True)
