"""
Abstract base class for storage backends.

Every backend exposes the same capability set so that the cleanup job, the
URL resolver and the HTTP routes never branch on the provider name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, AsyncIterator, Mapping

PROXY_PATH = "/api/files/"


@dataclass
class StoredObject:
    """An object as seen by a listing."""

    key: str  # Namespaced key, e.g. generated/certificates_1.pdf
    size: int  # Size in bytes
    last_modified: datetime
    metadata: dict[str, str] | None = None

    @property
    def filename(self) -> str:
        """Get the filename from the key."""
        return PurePosixPath(self.key).name

    @property
    def namespace(self) -> str:
        """Top-level namespace of the key, with trailing slash."""
        return self.key.split("/", 1)[0] + "/"


@dataclass
class UploadResult:
    """Outcome of an upload."""

    key: str
    url: str
    public_url: str | None = None


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    provider: str = "abstract"
    # Mark-as-emailed is a no-op where this is False
    supports_retention_extension: bool = True

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        key: str,
        content_type: str = "application/octet-stream",
        metadata_overrides: Mapping[str, Any] | None = None,
    ) -> UploadResult:
        """
        Upload an object with lifecycle metadata inferred from its key.

        Args:
            data: Payload, treated as opaque bytes.
            key: Namespaced storage key.
            content_type: MIME type of the payload.
            metadata_overrides: Fields that win over the inferred metadata.

        Returns:
            UploadResult with the key and client-facing URLs.

        Raises:
            TransportError: If the backend cannot be reached.
        """
        ...

    @abstractmethod
    def iter_objects(self, prefix: str = "") -> AsyncIterator[StoredObject]:
        """
        Iterate over every object under a prefix.

        Pagination is handled internally; consumers see one flat stream.
        """
        ...

    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        """List every object under a prefix, across all pages."""
        return [obj async for obj in self.iter_objects(prefix)]

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, str] | None:
        """
        Fetch the lifecycle metadata of an object.

        Returns:
            Metadata map, or None if the object does not exist.
        """
        ...

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """
        Download a whole object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def stream(self, key: str, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Stream an object in chunks."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting an absent key is not an error."""
        ...

    @abstractmethod
    async def rewrite_with_metadata(
        self, key: str, metadata_patch: Mapping[str, str]
    ) -> dict[str, str]:
        """
        Replace an object's metadata by rewriting the object.

        Sequence: read current metadata, read the body, merge the patch,
        write the object back under the same key. This is NOT atomic: a
        delete that lands between the read and the write resurrects the
        object, and a concurrent rewrite can lose an update. Callers must
        only use it on rare, system-triggered paths.

        Returns:
            The merged metadata that was written.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    async def resolve_url(self, key: str, force_download: bool = False) -> str:
        """Produce a client-facing URL for an object."""
        ...

    def url_prefixes(self) -> list[str]:
        """
        Absolute URL prefixes that map back to keys by exact stripping.

        Relative paths (static and proxy) are recognised for every backend
        by the URL resolver and are not listed here.
        """
        return []

    @property
    def public_base_url(self) -> str | None:
        """Public base URL (custom domain or CDN), if one is configured."""
        return None

    def proxy_url(self, key: str) -> str:
        """Path of the internal proxy endpoint that streams the object."""
        return f"{PROXY_PATH}{key}"
