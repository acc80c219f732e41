"""
S3-compatible storage backends.

Implements StorageBackend for Cloudflare R2 (custom endpoint, optional custom
public domain) and Amazon S3 (regional endpoint, optional CloudFront).
Both share the same aioboto3 plumbing and differ only in client
configuration and in the shapes of the URLs they hand out.
"""

from abc import abstractmethod
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping

import aioboto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from certstore.core.exceptions import ObjectNotFoundError, TransportError
from certstore.services.policy.keys import ensure_safe_key
from certstore.services.policy.retention import infer_metadata, merge_metadata
from certstore.services.storage.base import StorageBackend, StoredObject, UploadResult

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in NOT_FOUND_CODES


class S3CompatibleBackend(StorageBackend):
    """Shared S3 protocol implementation."""

    def __init__(
        self,
        bucket_name: str,
        access_key: str,
        secret_key: str,
        region: str,
        endpoint_url: str | None = None,
        public_url: str | None = None,
        signed_url_expires_in: int = 86400,
    ) -> None:
        """
        Initialize an S3-compatible backend.

        Args:
            bucket_name: Bucket holding both namespaces.
            access_key: Access key ID.
            secret_key: Secret access key.
            region: Region name ("auto" for R2).
            endpoint_url: Custom endpoint URL (R2 account endpoint).
            public_url: Custom domain or CDN serving the bucket publicly.
            signed_url_expires_in: Lifetime of presigned URLs in seconds.
        """
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self._public_url = public_url.rstrip("/") if public_url else None
        self.signed_url_expires_in = signed_url_expires_in

        self.session = aioboto3.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

        self.client_config = BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path" if endpoint_url else "auto"},
        )

    async def _get_client(self) -> Any:
        """Get S3 client context manager."""
        return self.session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            config=self.client_config,
        )

    def _transport_error(self, action: str, key: str, error: Exception) -> TransportError:
        return TransportError(
            message=f"Failed to {action}: {error}",
            details={"key": key, "bucket": self.bucket_name, "provider": self.provider},
        )

    @property
    def public_base_url(self) -> str | None:
        return self._public_url

    async def upload(
        self,
        data: bytes,
        key: str,
        content_type: str = "application/octet-stream",
        metadata_overrides: Mapping[str, Any] | None = None,
    ) -> UploadResult:
        """Put the object with its lifecycle metadata as user metadata."""
        ensure_safe_key(key)
        metadata = infer_metadata(key, content_type, metadata_overrides)

        try:
            async with await self._get_client() as client:
                await client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    Metadata=metadata.to_wire(),
                )
        except (ClientError, BotoCoreError) as e:
            raise self._transport_error("upload object", key, e) from e

        url = await self.resolve_url(key)
        public_url = f"{self._public_url}/{key}" if self._public_url else url
        return UploadResult(key=key, url=url, public_url=public_url)

    async def iter_objects(self, prefix: str = "") -> AsyncIterator[StoredObject]:
        """Follow list_objects_v2 continuation tokens until exhausted."""
        try:
            async with await self._get_client() as client:
                paginator = client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(
                    Bucket=self.bucket_name,
                    Prefix=prefix,
                ):
                    for obj in page.get("Contents", []):
                        if not obj.get("Key"):
                            continue
                        yield StoredObject(
                            key=obj["Key"],
                            size=obj.get("Size", 0),
                            last_modified=obj.get("LastModified")
                            or datetime.now(timezone.utc),
                        )
        except (ClientError, BotoCoreError) as e:
            raise self._transport_error("list objects", prefix, e) from e

    async def get_metadata(self, key: str) -> dict[str, str] | None:
        """HEAD the object and return its user metadata."""
        try:
            async with await self._get_client() as client:
                response = await client.head_object(
                    Bucket=self.bucket_name,
                    Key=key,
                )
                return dict(response.get("Metadata") or {})
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise self._transport_error("get metadata", key, e) from e
        except BotoCoreError as e:
            raise self._transport_error("get metadata", key, e) from e

    async def download(self, key: str) -> bytes:
        """Download the whole object body."""
        try:
            async with await self._get_client() as client:
                response = await client.get_object(
                    Bucket=self.bucket_name,
                    Key=key,
                )
                async with response["Body"] as stream:
                    return await stream.read()
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key) from e
            raise self._transport_error("download object", key, e) from e
        except BotoCoreError as e:
            raise self._transport_error("download object", key, e) from e

    async def stream(self, key: str, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Stream file content in chunks."""
        try:
            async with await self._get_client() as client:
                response = await client.get_object(
                    Bucket=self.bucket_name,
                    Key=key,
                )
                async with response["Body"] as stream:
                    while chunk := await stream.read(chunk_size):
                        yield chunk
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key) from e
            raise self._transport_error("stream object", key, e) from e
        except BotoCoreError as e:
            raise self._transport_error("stream object", key, e) from e

    async def delete(self, key: str) -> None:
        """Delete the object. S3 DeleteObject already succeeds on absent keys."""
        ensure_safe_key(key)
        try:
            async with await self._get_client() as client:
                await client.delete_object(
                    Bucket=self.bucket_name,
                    Key=key,
                )
        except ClientError as e:
            if _is_not_found(e):
                return
            raise self._transport_error("delete object", key, e) from e
        except BotoCoreError as e:
            raise self._transport_error("delete object", key, e) from e

    async def rewrite_with_metadata(
        self, key: str, metadata_patch: Mapping[str, str]
    ) -> dict[str, str]:
        """
        Re-upload the object under the same key with merged metadata.

        The protocol has no in-place metadata update. HEAD, GET, merge and
        PUT are four independent requests; a DELETE interleaved between the
        GET and the PUT is undone by the PUT. Not safe for hot paths.
        """
        ensure_safe_key(key)
        try:
            async with await self._get_client() as client:
                head = await client.head_object(Bucket=self.bucket_name, Key=key)
                response = await client.get_object(Bucket=self.bucket_name, Key=key)
                async with response["Body"] as stream:
                    body = await stream.read()

                merged = merge_metadata(head.get("Metadata") or {}, metadata_patch)
                await client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body,
                    ContentType=head.get("ContentType")
                    or response.get("ContentType")
                    or "application/octet-stream",
                    Metadata=merged,
                )
                return merged
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key) from e
            raise self._transport_error("rewrite metadata", key, e) from e
        except BotoCoreError as e:
            raise self._transport_error("rewrite metadata", key, e) from e

    async def get_presigned_url(
        self,
        key: str,
        expires_in: int | None = None,
        force_download: bool = False,
    ) -> str:
        """Generate a time-bounded GET URL."""
        params: dict[str, str] = {"Bucket": self.bucket_name, "Key": key}
        if force_download:
            params["ResponseContentDisposition"] = "attachment"

        try:
            async with await self._get_client() as client:
                return await client.generate_presigned_url(
                    "get_object",
                    Params=params,
                    ExpiresIn=expires_in or self.signed_url_expires_in,
                )
        except (ClientError, BotoCoreError) as e:
            raise self._transport_error("generate presigned URL", key, e) from e

    async def resolve_url(self, key: str, force_download: bool = False) -> str:
        """Public URL when a custom domain is set, a signed URL otherwise."""
        if self._public_url:
            return f"{self._public_url}/{key}"
        return await self.get_presigned_url(key, force_download=force_download)

    @abstractmethod
    def endpoint_prefixes(self) -> list[str]:
        """Raw endpoint URL prefixes preceding the key."""

    def url_prefixes(self) -> list[str]:
        prefixes = []
        if self._public_url:
            prefixes.append(f"{self._public_url}/")
        prefixes.extend(self.endpoint_prefixes())
        return prefixes


class CloudflareR2Backend(S3CompatibleBackend):
    """Cloudflare R2: account endpoint, path-style, optional custom domain."""

    provider = "cloudflare-r2"

    def __init__(
        self,
        endpoint_url: str,
        bucket_name: str,
        access_key: str,
        secret_key: str,
        public_url: str | None = None,
        signed_url_expires_in: int = 86400,
    ) -> None:
        super().__init__(
            bucket_name=bucket_name,
            access_key=access_key,
            secret_key=secret_key,
            region="auto",
            endpoint_url=endpoint_url.rstrip("/"),
            public_url=public_url,
            signed_url_expires_in=signed_url_expires_in,
        )

    def endpoint_prefixes(self) -> list[str]:
        return [f"{self.endpoint_url}/{self.bucket_name}/"]


class AmazonS3Backend(S3CompatibleBackend):
    """Amazon S3: regional endpoint, optional CloudFront distribution."""

    provider = "amazon-s3"

    def __init__(
        self,
        bucket_name: str,
        access_key: str,
        secret_key: str,
        region: str,
        cloudfront_url: str | None = None,
        signed_url_expires_in: int = 86400,
    ) -> None:
        super().__init__(
            bucket_name=bucket_name,
            access_key=access_key,
            secret_key=secret_key,
            region=region,
            public_url=cloudfront_url,
            signed_url_expires_in=signed_url_expires_in,
        )

    def endpoint_prefixes(self) -> list[str]:
        bucket, region = self.bucket_name, self.region
        return [
            f"https://{bucket}.s3.{region}.amazonaws.com/",
            f"https://{bucket}.s3.amazonaws.com/",
            f"https://s3.{region}.amazonaws.com/{bucket}/",
        ]
