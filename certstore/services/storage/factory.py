"""
Storage backend factory.

Creates the appropriate storage backend from an explicit Settings value.
Called once at startup; everything downstream depends on the StorageBackend
interface only.
"""

from pathlib import Path

from certstore.core.config import Settings
from certstore.core.exceptions import ConfigurationError
from certstore.services.storage.base import StorageBackend
from certstore.services.storage.local import LocalStorageBackend
from certstore.services.storage.s3 import AmazonS3Backend, CloudflareR2Backend

R2_REQUIRED = ("r2_endpoint", "r2_access_key_id", "r2_secret_access_key", "r2_bucket_name")
S3_REQUIRED = ("s3_access_key_id", "s3_secret_access_key", "s3_bucket_name", "s3_region")


def _require(settings: Settings, provider: str, fields: tuple[str, ...]) -> None:
    missing = [name for name in fields if not getattr(settings, name)]
    if missing:
        raise ConfigurationError(
            message=f"Storage provider {provider} is not properly configured",
            details={"provider": provider, "missing": [m.upper() for m in missing]},
        )


def create_storage_backend(settings: Settings) -> StorageBackend:
    """
    Create the storage backend selected by settings.

    No network I/O happens here; an incomplete configuration fails before
    any request is made.

    Args:
        settings: Application settings.

    Returns:
        Configured StorageBackend instance.

    Raises:
        ConfigurationError: If the selected provider is missing settings.
    """
    provider = settings.storage_provider

    if provider == "local":
        return LocalStorageBackend(
            base_path=Path(settings.public_root),
            development=settings.is_development,
        )

    if provider == "cloudflare-r2":
        _require(settings, provider, R2_REQUIRED)
        return CloudflareR2Backend(
            endpoint_url=settings.r2_endpoint,
            bucket_name=settings.r2_bucket_name,
            access_key=settings.r2_access_key_id,
            secret_key=settings.r2_secret_access_key,
            public_url=settings.r2_public_url,
            signed_url_expires_in=settings.signed_url_expires_in,
        )

    if provider == "amazon-s3":
        _require(settings, provider, S3_REQUIRED)
        return AmazonS3Backend(
            bucket_name=settings.s3_bucket_name,
            access_key=settings.s3_access_key_id,
            secret_key=settings.s3_secret_access_key,
            region=settings.s3_region,
            cloudfront_url=settings.s3_cloudfront_url,
            signed_url_expires_in=settings.signed_url_expires_in,
        )

    raise ConfigurationError(
        message=f"Unknown storage provider: {provider}",
        details={"provider": provider},
    )
