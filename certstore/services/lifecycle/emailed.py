"""
Retention extension for artifacts that were delivered by email.

Once a certificate has been emailed its link lives in someone's inbox, so
the object is flagged and the retention policy keeps it for at least 90
days. The flag is written through rewrite_with_metadata; see that method
for the race it carries.
"""

from dataclasses import dataclass
from typing import Any

from certstore.core.logging import get_logger
from certstore.services.lifecycle.urls import UrlResolver
from certstore.services.policy.retention import META_EMAIL_SENT
from certstore.services.storage.base import StorageBackend

logger = get_logger(__name__)


@dataclass
class MarkEmailedResult:
    """Outcome of a mark-as-emailed request."""

    message: str
    file_key: str | None = None
    storage_provider: str | None = None
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.file_key is not None:
            body["fileKey"] = self.file_key
        if self.storage_provider is not None:
            body["storageProvider"] = self.storage_provider
        return body


async def mark_as_emailed(
    backend: StorageBackend,
    resolver: UrlResolver,
    file_url: str,
) -> MarkEmailedResult:
    """
    Flag the object behind a previously issued URL as emailed.

    Args:
        backend: Active storage backend.
        resolver: Resolver bound to the same backend.
        file_url: URL returned by an earlier upload or resolve.

    Returns:
        MarkEmailedResult. A no-op success on backends without a
        retention lifecycle.

    Raises:
        UnrecognizedUrlError: If the URL does not map to a key.
        UnsafeKeyError: If the derived key is outside the namespaces.
        ObjectNotFoundError: If the object no longer exists.
        TransportError: If the backend cannot be reached. Safe to retry.
    """
    if not backend.supports_retention_extension:
        return MarkEmailedResult(
            message=f"{backend.provider} storage has no retention lifecycle, skipping",
            storage_provider=backend.provider,
        )

    key = resolver.key_from_url(file_url)
    await backend.rewrite_with_metadata(key, {META_EMAIL_SENT: "true"})
    logger.info("object_marked_emailed", key=key, provider=backend.provider)

    return MarkEmailedResult(message="File marked as emailed", file_key=key)
