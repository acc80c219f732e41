"""
Pydantic models for the storage maintenance endpoints.

Field aliases follow the camelCase JSON contract consumed by the web client.
"""

from pydantic import BaseModel, ConfigDict, Field

from certstore.models.common import StrictBaseModel


class CamelModel(BaseModel):
    """Response model serialized with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


class CleanupResponse(CamelModel):
    """Report of a cleanup run."""

    success: bool = True
    storage_provider: str = Field(..., alias="storageProvider")
    dry_run: bool = Field(False, alias="dryRun")
    examined: int = 0
    deleted_count: int = Field(0, alias="deletedCount")
    deleted: list[str] = Field(default_factory=list)
    kept_count: int = Field(0, alias="keptCount")
    kept: list[str] = Field(default_factory=list)
    error_count: int = Field(0, alias="errorCount")
    errors: list[str] = Field(default_factory=list)
    incomplete: bool = False
    timestamp: str


class MarkEmailedRequest(StrictBaseModel):
    """Request body of mark-as-emailed."""

    file_url: str | None = Field(default=None, alias="fileUrl")


class MarkEmailedResponse(CamelModel):
    """Outcome of mark-as-emailed."""

    success: bool = True
    message: str
    file_key: str | None = Field(default=None, alias="fileKey")
    storage_provider: str | None = Field(default=None, alias="storageProvider")


class StorageItem(CamelModel):
    """One object in an admin listing."""

    key: str
    size: int
    last_modified: str | None = Field(default=None, alias="lastModified")


class StorageTotals(BaseModel):
    count: int = 0
    size: int = 0


class PrefixAggregate(BaseModel):
    prefix: str
    count: int
    size: int


class StorageListResponse(CamelModel):
    """Admin listing with totals and per-prefix aggregates."""

    provider: str
    total: StorageTotals
    items: list[StorageItem]
    by_prefix: list[PrefixAggregate] = Field(default_factory=list, alias="byPrefix")
    largest: list[StorageItem] = Field(default_factory=list)


class DeleteItem(StrictBaseModel):
    """One admin delete action."""

    key: str
    is_prefix: bool = Field(default=False, alias="isPrefix")


class DeleteRequest(StrictBaseModel):
    """Admin delete request."""

    items: list[DeleteItem] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    """Outcome of an admin delete."""

    success: bool = True
    deleted: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
