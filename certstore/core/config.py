"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
A single Settings value is built at process start and handed to every backend
and job that needs it.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

StorageProvider = Literal["local", "cloudflare-r2", "amazon-s3"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = Field(default="CertStore", description="Application name")
    app_version: str = Field(default="1.0.0", description="API version")
    app_env: Literal["development", "staging", "production"] = Field(
        default="production", description="Environment"
    )
    app_debug: bool = Field(default=False, description="Debug mode")
    app_host: str = Field(default="0.0.0.0", description="API host")
    app_port: int = Field(default=8000, description="API port")
    app_workers: int = Field(default=4, description="Number of workers")

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    storage_provider: StorageProvider = Field(
        default="local", description="Active storage backend"
    )
    public_root: str = Field(
        default="public",
        description="Directory holding the generated/ and temp_images/ namespaces",
    )
    signed_url_expires_in: int = Field(
        default=86400, ge=1, description="Signed URL lifetime in seconds"
    )

    # Cloudflare R2 (S3-compatible, optional custom domain)
    r2_endpoint: str | None = Field(default=None, description="R2 account endpoint")
    r2_access_key_id: str | None = Field(default=None, description="R2 access key")
    r2_secret_access_key: str | None = Field(default=None, description="R2 secret key")
    r2_bucket_name: str | None = Field(default=None, description="R2 bucket name")
    r2_public_url: str | None = Field(
        default=None, description="Custom public domain serving the R2 bucket"
    )

    # Amazon S3 (+ CloudFront)
    s3_access_key_id: str | None = Field(default=None, description="S3 access key")
    s3_secret_access_key: str | None = Field(default=None, description="S3 secret key")
    s3_bucket_name: str | None = Field(default=None, description="S3 bucket name")
    s3_region: str | None = Field(default=None, description="S3 region")
    s3_cloudfront_url: str | None = Field(
        default=None, description="CloudFront distribution URL in front of the bucket"
    )

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------
    cleanup_secret_key: str | None = Field(
        default=None, description="Shared secret expected in the X-Cleanup-Key header"
    )
    cleanup_concurrency: int = Field(
        default=8, ge=1, le=64, description="Max in-flight object requests per cleanup"
    )
    cleanup_deadline_seconds: float | None = Field(
        default=None, gt=0, description="Time budget for a single cleanup run"
    )
    cleanup_schedule_seconds: float = Field(
        default=86400.0, gt=0, description="Interval of the scheduled cleanup"
    )

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = Field(
        default="redis://localhost:6379/0", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/0", description="Celery result backend"
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="json", description="Log format"
    )

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["*"])
    cors_allow_headers: list[str] = Field(default=["*"])

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("r2_public_url", "s3_cloudfront_url", "r2_endpoint", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize base URLs so keys can be appended with a single slash."""
        if isinstance(v, str):
            v = v.strip().rstrip("/")
            return v or None
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
