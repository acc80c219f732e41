"""
HTTP endpoint tests.

Tests every route with:
- Valid requests
- Authorization and configuration failures
- Error body shape
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from certstore.api.main import create_app
from certstore.core.config import Settings
from certstore.services.storage.local import LocalStorageBackend

from tests.fakes import FakeS3Store, FakeSession, wire_metadata


@asynccontextmanager
async def serve(settings: Settings):
    """App and client, for tests that reach into app.state."""
    app = create_app(settings)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield app, ac


async def _seed_local(public_root: Path) -> LocalStorageBackend:
    backend = LocalStorageBackend(public_root)
    now = datetime.now(timezone.utc)
    await backend.upload(
        b"old", "temp_images/preview_old.png", "image/png", {"created": now - timedelta(days=2)}
    )
    await backend.upload(b"new", "temp_images/preview_new.png", "image/png")
    await backend.upload(b"%PDF-", "generated/individual_1/cert.pdf", "application/pdf")
    return backend


# =============================================================================
# Root & Health Endpoints
# =============================================================================


@pytest.mark.asyncio
async def test_root_returns_api_info(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200

    data = response.json()
    assert data["name"] == "CertStore"
    assert data["docs"] == "/redoc"


@pytest.mark.asyncio
async def test_health_reports_storage_provider(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["storageProvider"] == "local"
    assert data["storageConfigured"] is True
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_when_provider_misconfigured(public_root: Path):
    settings = Settings(storage_provider="cloudflare-r2", public_root=str(public_root))

    async with serve(settings) as (_, client):
        data = (await client.get("/health")).json()

    assert data["status"] == "degraded"
    assert data["storageProvider"] == "cloudflare-r2"


# =============================================================================
# Cleanup
# =============================================================================


@pytest.mark.asyncio
async def test_cleanup_rejects_wrong_method(client: AsyncClient, cleanup_headers: dict):
    response = await client.get("/api/cleanup-storage", headers=cleanup_headers)

    assert response.status_code == 405
    assert response.json()["error"] == "Method Not Allowed"


@pytest.mark.asyncio
async def test_cleanup_requires_secret(client: AsyncClient):
    response = await client.post("/api/cleanup-storage")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "code": "AUTHORIZATION_ERROR"}


@pytest.mark.asyncio
async def test_cleanup_rejects_wrong_secret(client: AsyncClient):
    response = await client.post("/api/cleanup-storage", headers={"X-Cleanup-Key": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_cleanup_reports_configuration_before_auth(public_root: Path):
    settings = Settings(
        storage_provider="amazon-s3",
        public_root=str(public_root),
        cleanup_secret_key="secret",
    )

    async with serve(settings) as (_, client):
        response = await client.post("/api/cleanup-storage")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "CONFIGURATION_ERROR"
    assert "S3_BUCKET_NAME" in body["details"]["missing"]


@pytest.mark.asyncio
async def test_cleanup_without_configured_secret_refuses_before_listing(
    r2_settings: Settings, s3_store: FakeS3Store
):
    s3_store.add("temp_images/preview_old.png", metadata=wire_metadata("preview", "24h", timedelta(days=3)))
    settings = r2_settings.model_copy(update={"cleanup_secret_key": None})

    async with serve(settings) as (app, client):
        app.state.storage.services.backend.session = FakeSession(s3_store)
        response = await client.post("/api/cleanup-storage", headers={"X-Cleanup-Key": "anything"})

    assert response.status_code == 401
    assert response.json()["error"] == "Authentication not configured"
    assert [op for op, _ in s3_store.calls if op == "list_objects_v2"] == []
    assert "temp_images/preview_old.png" in s3_store.objects


@pytest.mark.asyncio
async def test_cleanup_deletes_expired_local_objects(
    client: AsyncClient, cleanup_headers: dict, public_root: Path
):
    await _seed_local(public_root)

    response = await client.post("/api/cleanup-storage", headers=cleanup_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["storageProvider"] == "local"
    assert data["dryRun"] is False
    assert data["deleted"] == ["temp_images/preview_old.png"]
    assert data["deletedCount"] == 1
    assert data["keptCount"] == 2
    assert data["errorCount"] == 0
    assert data["incomplete"] is False
    assert data["timestamp"].endswith("Z")
    assert not (public_root / "temp_images" / "preview_old.png").exists()


@pytest.mark.asyncio
async def test_cleanup_dry_run(client: AsyncClient, cleanup_headers: dict, public_root: Path):
    await _seed_local(public_root)

    response = await client.post(
        "/api/cleanup-storage", params={"dry_run": "true"}, headers=cleanup_headers
    )

    assert response.status_code == 200
    assert response.json()["dryRun"] is True
    assert response.json()["deleted"] == ["temp_images/preview_old.png"]
    assert (public_root / "temp_images" / "preview_old.png").exists()


@pytest.mark.asyncio
async def test_cleanup_in_progress_conflict(test_settings: Settings, cleanup_headers: dict):
    async with serve(test_settings) as (app, client):
        lease = app.state.storage.services.cleanup_job._lease
        await lease.acquire()
        try:
            response = await client.post("/api/cleanup-storage", headers=cleanup_headers)
        finally:
            lease.release()

    assert response.status_code == 409
    assert response.json()["code"] == "CLEANUP_IN_PROGRESS"


@pytest.mark.asyncio
async def test_cleanup_unexpected_failure(test_settings: Settings, cleanup_headers: dict):
    async def boom(**kwargs):
        raise RuntimeError("boom")

    async with serve(test_settings) as (app, client):
        app.state.storage.services.cleanup_job.run = boom
        response = await client.post("/api/cleanup-storage", headers=cleanup_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Cleanup failed", "code": "CLEANUP_FAILED", "details": "boom"}


# =============================================================================
# Mark as emailed
# =============================================================================


@pytest.mark.asyncio
async def test_mark_emailed_local_is_a_no_op(client: AsyncClient):
    response = await client.post(
        "/api/mark-emailed", json={"fileUrl": "/api/files/generated/certificates_1.pdf"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["storageProvider"] == "local"
    assert "fileKey" not in data


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"fileUrl": ""}, {"fileUrl": "   "}])
async def test_mark_emailed_requires_file_url(client: AsyncClient, body: dict):
    response = await client.post("/api/mark-emailed", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_mark_emailed_on_r2(r2_client: AsyncClient, s3_store: FakeS3Store):
    s3_store.add("generated/certificates_1.pdf", metadata=wire_metadata("bulk", "7d", timedelta(days=1)))

    response = await r2_client.post(
        "/api/mark-emailed",
        json={"fileUrl": "https://files.example.com/generated/certificates_1.pdf"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data == {
        "success": True,
        "message": "File marked as emailed",
        "fileKey": "generated/certificates_1.pdf",
    }
    assert s3_store.objects["generated/certificates_1.pdf"]["Metadata"]["emailsent"] == "true"


@pytest.mark.asyncio
async def test_mark_emailed_unrecognized_url(r2_client: AsyncClient):
    response = await r2_client.post(
        "/api/mark-emailed", json={"fileUrl": "https://elsewhere.example.com/generated/a.pdf"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "UNRECOGNIZED_URL"


@pytest.mark.asyncio
async def test_mark_emailed_missing_object(r2_client: AsyncClient):
    response = await r2_client.post(
        "/api/mark-emailed", json={"fileUrl": "/generated/gone.pdf"}
    )

    assert response.status_code == 404
    assert response.json()["code"] == "OBJECT_NOT_FOUND"


# =============================================================================
# File proxy
# =============================================================================


@pytest.mark.asyncio
async def test_file_proxy_streams_object(client: AsyncClient, public_root: Path):
    await _seed_local(public_root)

    response = await client.get("/api/files/generated/individual_1/cert.pdf")

    assert response.status_code == 200
    assert response.content == b"%PDF-"
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith("inline")


@pytest.mark.asyncio
async def test_file_proxy_as_attachment(client: AsyncClient, public_root: Path):
    await _seed_local(public_root)

    response = await client.get(
        "/api/files/generated/individual_1/cert.pdf", params={"download": "true"}
    )

    assert response.headers["content-disposition"].startswith("attachment")


@pytest.mark.asyncio
async def test_file_proxy_missing_object(client: AsyncClient):
    response = await client.get("/api/files/generated/missing.pdf")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_file_proxy_rejects_keys_outside_namespaces(client: AsyncClient):
    response = await client.get("/api/files/private/config.json")

    assert response.status_code == 400
    assert response.json()["code"] == "UNSAFE_KEY"


@pytest.mark.asyncio
async def test_file_proxy_on_r2(r2_client: AsyncClient, s3_store: FakeS3Store):
    s3_store.add("generated/a.pdf", body=b"remote", metadata=wire_metadata("bulk", "7d", None))

    response = await r2_client.get("/api/files/generated/a.pdf")

    assert response.status_code == 200
    assert response.content == b"remote"


# =============================================================================
# Admin
# =============================================================================


@pytest.mark.asyncio
async def test_admin_listing_requires_secret(client: AsyncClient):
    response = await client.get("/api/admin/storage")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_listing_aggregates(client: AsyncClient, cleanup_headers: dict, public_root: Path):
    await _seed_local(public_root)

    response = await client.get("/api/admin/storage", headers=cleanup_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "local"
    assert data["total"] == {"count": 3, "size": 11}
    assert [item["key"] for item in data["items"]] == [
        "generated/individual_1/cert.pdf",
        "temp_images/preview_new.png",
        "temp_images/preview_old.png",
    ]
    assert data["byPrefix"] == [
        {"prefix": "generated/individual_1/", "count": 1, "size": 5},
        {"prefix": "temp_images/", "count": 2, "size": 6},
    ]
    assert data["largest"][0]["key"] == "generated/individual_1/cert.pdf"
    assert data["items"][0]["lastModified"].endswith("Z")


@pytest.mark.asyncio
async def test_admin_listing_by_prefix(client: AsyncClient, cleanup_headers: dict, public_root: Path):
    await _seed_local(public_root)

    response = await client.get(
        "/api/admin/storage", params={"prefix": "temp_images/"}, headers=cleanup_headers
    )

    assert response.json()["total"]["count"] == 2


@pytest.mark.asyncio
async def test_admin_listing_rejects_unsafe_prefix(client: AsyncClient, cleanup_headers: dict):
    response = await client.get(
        "/api/admin/storage", params={"prefix": "private/"}, headers=cleanup_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_delete(client: AsyncClient, cleanup_headers: dict, public_root: Path):
    await _seed_local(public_root)

    response = await client.post(
        "/api/admin/storage/delete",
        headers=cleanup_headers,
        json={
            "items": [
                {"key": "generated/individual_1/cert.pdf"},
                {"key": "temp_images/", "isPrefix": True},
                {"key": "../outside.txt"},
            ]
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["deleted"] == [
        "generated/individual_1/cert.pdf",
        "temp_images/preview_new.png",
        "temp_images/preview_old.png",
    ]
    assert len(data["errors"]) == 1
    assert data["errors"][0].startswith("../outside.txt: ")
    assert not any((public_root / "temp_images").iterdir())


@pytest.mark.asyncio
async def test_admin_delete_validates_body(client: AsyncClient, cleanup_headers: dict):
    response = await client.post(
        "/api/admin/storage/delete", headers=cleanup_headers, json={"items": "all"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_admin_prefix_delete_reports_partial_progress(
    r2_client: AsyncClient, cleanup_headers: dict, s3_store: FakeS3Store
):
    for name in ["a", "b", "c"]:
        s3_store.add(f"temp_images/{name}.png", metadata=wire_metadata("preview", "24h", None))
    s3_store.errors[("delete_object", "temp_images/c.png")] = "AccessDenied"

    response = await r2_client.post(
        "/api/admin/storage/delete",
        headers=cleanup_headers,
        json={"items": [{"key": "temp_images/", "isPrefix": True}]},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["deleted"] == ["temp_images/a.png", "temp_images/b.png"]
    assert len(data["errors"]) == 1
    assert data["errors"][0].startswith("temp_images/: ")
    assert sorted(s3_store.objects) == ["temp_images/c.png"]
