"""
Pytest configuration and fixtures.
"""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from certstore.api.main import create_app
from certstore.core.config import Settings
from certstore.services.storage.local import LocalStorageBackend
from certstore.services.storage.s3 import AmazonS3Backend, CloudflareR2Backend
from tests.fakes import FakeS3Store, FakeSession

CLEANUP_SECRET = "test-cleanup-secret"


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def public_root(tmp_path: Path) -> Path:
    return tmp_path / "public"


@pytest.fixture
def test_settings(public_root: Path) -> Settings:
    """Create test settings."""
    return Settings(
        app_env="production",
        app_debug=True,
        storage_provider="local",
        public_root=str(public_root),
        cleanup_secret_key=CLEANUP_SECRET,
        log_format="console",
    )


@pytest.fixture
def r2_settings(public_root: Path) -> Settings:
    return Settings(
        app_env="production",
        storage_provider="cloudflare-r2",
        public_root=str(public_root),
        r2_endpoint="https://account.r2.cloudflarestorage.com",
        r2_access_key_id="r2-key",
        r2_secret_access_key="r2-secret",
        r2_bucket_name="certs",
        r2_public_url="https://files.example.com/",
        cleanup_secret_key=CLEANUP_SECRET,
        log_format="console",
    )


# =============================================================================
# Backends
# =============================================================================


@pytest.fixture
def local_backend(public_root: Path) -> LocalStorageBackend:
    return LocalStorageBackend(public_root)


@pytest.fixture
def s3_store() -> FakeS3Store:
    return FakeS3Store()


@pytest.fixture
def r2_backend(s3_store: FakeS3Store) -> CloudflareR2Backend:
    backend = CloudflareR2Backend(
        endpoint_url="https://account.r2.cloudflarestorage.com",
        bucket_name="certs",
        access_key="r2-key",
        secret_key="r2-secret",
        public_url="https://files.example.com",
    )
    backend.session = FakeSession(s3_store)
    return backend


@pytest.fixture
def s3_backend(s3_store: FakeS3Store) -> AmazonS3Backend:
    backend = AmazonS3Backend(
        bucket_name="certs",
        access_key="s3-key",
        secret_key="s3-secret",
        region="eu-west-3",
    )
    backend.session = FakeSession(s3_store)
    return backend


# =============================================================================
# Test clients
# =============================================================================


@pytest_asyncio.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create test client on the local backend."""
    app = create_app(test_settings)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def r2_client(
    r2_settings: Settings, s3_store: FakeS3Store
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client on R2 backed by the fake session."""
    app = create_app(r2_settings)
    app.state.storage.services.backend.session = FakeSession(s3_store)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def cleanup_headers() -> dict[str, str]:
    return {"X-Cleanup-Key": CLEANUP_SECRET}
