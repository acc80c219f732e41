"""Storage backends for local filesystem, Cloudflare R2 and Amazon S3."""

from certstore.services.storage.base import StorageBackend, StoredObject, UploadResult
from certstore.services.storage.factory import create_storage_backend

__all__ = ["StorageBackend", "StoredObject", "UploadResult", "create_storage_backend"]
