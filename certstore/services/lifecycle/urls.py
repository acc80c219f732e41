"""
Client-facing URLs for stored objects, and the reverse mapping.

Forward: local development serves static paths, a configured custom domain
or CDN serves public URLs, otherwise remote objects get signed URLs. When
signing fails the internal proxy endpoint is used instead.

Reverse: a URL handed out earlier is mapped back to its key by stripping
one of a fixed set of prefixes. Nothing fuzzy: a URL that does not start
with a known prefix is rejected rather than guessed at.
"""

from urllib.parse import unquote, urlsplit, urlunsplit

from certstore.core.exceptions import ConfigurationError, TransportError, UnrecognizedUrlError
from certstore.core.logging import get_logger
from certstore.services.policy.keys import ensure_safe_key
from certstore.services.storage.base import PROXY_PATH, StorageBackend

# Relative shapes, valid for every backend: the proxy path first since "/"
# would also match it.
RELATIVE_PREFIXES = (PROXY_PATH, "/")

logger = get_logger(__name__)


class UrlResolver:
    """Maps keys to client URLs and back for one backend."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    async def resolve(self, key: str, force_download: bool = False) -> str:
        """
        Produce a client-facing URL for a key.

        Args:
            key: Storage key.
            force_download: Ask for an attachment disposition on signed URLs.

        Returns:
            Static path, public URL, signed URL or proxy path.
        """
        try:
            return await self.backend.resolve_url(key, force_download=force_download)
        except (ConfigurationError, TransportError) as e:
            logger.warning("url_resolution_fallback", key=key, error=e.message)
            return self.backend.proxy_url(key)

    def key_from_url(self, url: str) -> str:
        """
        Map a previously issued URL back to its storage key.

        Recognised shapes: the backend's raw endpoint URL, its custom domain
        URL, and a local relative path (static or proxy). Query strings and
        fragments are ignored, so signed URLs map too.

        Raises:
            UnrecognizedUrlError: If no known prefix matches.
            UnsafeKeyError: If the derived key is outside the namespaces.
        """
        candidate = (url or "").strip()
        if not candidate:
            raise UnrecognizedUrlError(url)

        parts = urlsplit(candidate)
        bare = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

        if parts.scheme or parts.netloc:
            prefixes = self.backend.url_prefixes()
        else:
            prefixes = list(RELATIVE_PREFIXES)

        for prefix in prefixes:
            if bare.startswith(prefix) and len(bare) > len(prefix):
                key = unquote(bare[len(prefix):])
                return ensure_safe_key(key)

        raise UnrecognizedUrlError(url)
