"""
Local filesystem storage backend.

Implements StorageBackend on top of the public web root. Keys are paths
relative to that root. Lifecycle metadata lives in JSON sidecar files under
<root>/.metadata/, outside the served namespaces.
Used for development and single-host deployments.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Mapping

import aiofiles
import aiofiles.os

from certstore.core.exceptions import DataIntegrityError, ObjectNotFoundError, StorageError
from certstore.services.policy.keys import ALLOWED_NAMESPACES, ensure_safe_key
from certstore.services.policy.retention import infer_metadata, merge_metadata
from certstore.services.storage.base import StorageBackend, StoredObject, UploadResult

METADATA_DIR = ".metadata"


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage implementation."""

    provider = "local"
    supports_retention_extension = False

    def __init__(self, base_path: str | Path, development: bool = False) -> None:
        """
        Initialize local storage backend.

        Args:
            base_path: Public root holding generated/ and temp_images/.
            development: Serve objects as static paths instead of the proxy.
        """
        self.base_path = Path(base_path).resolve()
        self.metadata_path = self.base_path / METADATA_DIR
        self.development = development

    def _get_full_path(self, key: str) -> Path:
        """Get full filesystem path for a key."""
        clean_key = key.lstrip("/").lstrip("\\")
        full_path = (self.base_path / clean_key).resolve()

        if not full_path.is_relative_to(self.base_path):
            raise StorageError(
                message="Invalid file key",
                details={"key": key, "reason": "Path traversal detected"},
            )

        return full_path

    def _get_sidecar_path(self, key: str) -> Path:
        return self.metadata_path / f"{key}.json"

    def _to_key(self, path: Path) -> str:
        return path.relative_to(self.base_path).as_posix()

    def _create_stored_object(self, path: Path) -> StoredObject:
        stat = path.stat()
        return StoredObject(
            key=self._to_key(path),
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    async def _write_sidecar(self, key: str, metadata: Mapping[str, str]) -> None:
        sidecar = self._get_sidecar_path(key)
        await aiofiles.os.makedirs(sidecar.parent, exist_ok=True)
        async with aiofiles.open(sidecar, "w") as f:
            await f.write(json.dumps(dict(metadata), sort_keys=True))

    async def _read_sidecar(self, key: str) -> dict[str, str] | None:
        sidecar = self._get_sidecar_path(key)
        if not sidecar.is_file():
            return None
        async with aiofiles.open(sidecar, "r") as f:
            raw = await f.read()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DataIntegrityError(
                message=f"Corrupt metadata sidecar: {e}",
                details={"key": key},
            ) from e
        return {str(k): str(v) for k, v in data.items()}

    def _prune_empty_dirs(self, start: Path, stop: Path) -> None:
        parent = start
        while parent != stop and parent.is_relative_to(stop):
            try:
                if any(parent.iterdir()):
                    break
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent

    async def upload(
        self,
        data: bytes,
        key: str,
        content_type: str = "application/octet-stream",
        metadata_overrides: Mapping[str, Any] | None = None,
    ) -> UploadResult:
        """Write the object and its metadata sidecar."""
        ensure_safe_key(key)
        full_path = self._get_full_path(key)
        metadata = infer_metadata(key, content_type, metadata_overrides)

        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(full_path, "wb") as f:
                await f.write(data)
            await self._write_sidecar(key, metadata.to_wire())
        except OSError as e:
            raise StorageError(
                message=f"Failed to upload file: {e}",
                details={"key": key},
            ) from e

        url = await self.resolve_url(key)
        return UploadResult(key=key, url=url, public_url=url)

    async def iter_objects(self, prefix: str = "") -> AsyncIterator[StoredObject]:
        """Walk the namespace directories recursively, in key order."""
        for namespace in ALLOWED_NAMESPACES:
            if prefix and not (namespace.startswith(prefix) or prefix.startswith(namespace)):
                continue
            root = self.base_path / namespace.rstrip("/")
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if not path.is_file():
                    continue
                obj = self._create_stored_object(path)
                if obj.key.startswith(prefix):
                    yield obj

    async def get_metadata(self, key: str) -> dict[str, str] | None:
        """Read the sidecar; an object without one reports empty metadata."""
        full_path = self._get_full_path(key)
        if not full_path.is_file():
            return None
        metadata = await self._read_sidecar(key)
        return metadata if metadata is not None else {}

    async def download(self, key: str) -> bytes:
        """Download file from local storage."""
        full_path = self._get_full_path(key)

        if not full_path.is_file():
            raise ObjectNotFoundError(key)

        try:
            async with aiofiles.open(full_path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(
                message=f"Failed to read file: {e}",
                details={"key": key},
            ) from e

    async def stream(self, key: str, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Stream file content in chunks."""
        full_path = self._get_full_path(key)

        if not full_path.is_file():
            raise ObjectNotFoundError(key)

        try:
            async with aiofiles.open(full_path, "rb") as f:
                while chunk := await f.read(chunk_size):
                    yield chunk
        except OSError as e:
            raise StorageError(
                message=f"Failed to stream file: {e}",
                details={"key": key},
            ) from e

    async def delete(self, key: str) -> None:
        """Delete the file, its sidecar and any directories left empty."""
        ensure_safe_key(key)
        full_path = self._get_full_path(key)
        sidecar = self._get_sidecar_path(key)

        try:
            if full_path.is_file():
                await aiofiles.os.remove(full_path)
            if sidecar.is_file():
                await aiofiles.os.remove(sidecar)
        except FileNotFoundError:
            # Removed concurrently
            pass
        except OSError as e:
            raise StorageError(
                message=f"Failed to delete file: {e}",
                details={"key": key},
            ) from e

        namespace_root = self.base_path / key.split("/", 1)[0]
        self._prune_empty_dirs(full_path.parent, namespace_root)
        self._prune_empty_dirs(sidecar.parent, self.metadata_path)

    async def rewrite_with_metadata(
        self, key: str, metadata_patch: Mapping[str, str]
    ) -> dict[str, str]:
        """
        Merge a patch into the sidecar.

        The body is left in place; only the sidecar is rewritten. The
        read-merge-write sequence has the same race as the remote backends.
        """
        ensure_safe_key(key)
        current = await self.get_metadata(key)
        if current is None:
            raise ObjectNotFoundError(key)

        merged = merge_metadata(current, metadata_patch)
        try:
            await self._write_sidecar(key, merged)
        except OSError as e:
            raise StorageError(
                message=f"Failed to rewrite metadata: {e}",
                details={"key": key},
            ) from e
        return merged

    async def resolve_url(self, key: str, force_download: bool = False) -> str:
        """Static path under the dev web root, otherwise the proxy endpoint."""
        if self.development:
            return f"/{key}"
        return self.proxy_url(key)
