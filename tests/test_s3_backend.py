"""
S3-compatible backend tests against a fake aioboto3 session.
"""

import pytest

from certstore.core.exceptions import ObjectNotFoundError, TransportError, UnsafeKeyError
from certstore.services.storage.s3 import AmazonS3Backend, CloudflareR2Backend, S3CompatibleBackend

from tests.fakes import FakeS3Store, FakeSession, wire_metadata


# =============================================================================
# Upload
# =============================================================================


@pytest.mark.asyncio
async def test_upload_stores_lifecycle_metadata(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    result = await r2_backend.upload(b"%PDF", "generated/individual_7/cert.pdf", "application/pdf")

    stored = s3_store.objects["generated/individual_7/cert.pdf"]
    assert stored["Body"] == b"%PDF"
    assert stored["ContentType"] == "application/pdf"
    assert stored["Metadata"]["type"] == "individual"
    assert stored["Metadata"]["retention"] == "90d"
    assert stored["Metadata"]["emailsent"] == "false"
    assert result.url == "https://files.example.com/generated/individual_7/cert.pdf"
    assert result.public_url == result.url


@pytest.mark.asyncio
async def test_upload_applies_overrides(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    await r2_backend.upload(b"x", "generated/preview_1.png", "image/png", {"retention": "7d"})

    assert s3_store.objects["generated/preview_1.png"]["Metadata"]["retention"] == "7d"


@pytest.mark.asyncio
async def test_upload_rejects_unsafe_key(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    with pytest.raises(UnsafeKeyError):
        await r2_backend.upload(b"x", "config/secrets.json")
    assert s3_store.calls == []


@pytest.mark.asyncio
async def test_upload_transport_failure(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    s3_store.errors[("put_object", "generated/a.pdf")] = "AccessDenied"

    with pytest.raises(TransportError):
        await r2_backend.upload(b"x", "generated/a.pdf")


# =============================================================================
# Listing
# =============================================================================


@pytest.mark.asyncio
async def test_listing_follows_every_page(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    for i in range(5):
        s3_store.add(f"generated/certificates_{i}.pdf")
    s3_store.add("temp_images/logo.png")

    objects = await r2_backend.list_objects("generated/")

    assert [obj.key for obj in objects] == [f"generated/certificates_{i}.pdf" for i in range(5)]
    assert s3_store.pages_served == 3


@pytest.mark.asyncio
async def test_listing_empty_prefix(r2_backend: CloudflareR2Backend):
    assert await r2_backend.list_objects("temp_images/") == []


@pytest.mark.asyncio
async def test_listing_failure_is_transport_error(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    s3_store.errors[("list_objects_v2", "generated/")] = "InternalError"

    with pytest.raises(TransportError):
        await r2_backend.list_objects("generated/")


# =============================================================================
# Metadata, download, delete
# =============================================================================


@pytest.mark.asyncio
async def test_get_metadata(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    s3_store.add("generated/a.pdf", metadata={"type": "bulk", "retention": "7d"})

    assert await r2_backend.get_metadata("generated/a.pdf") == {"type": "bulk", "retention": "7d"}
    assert await r2_backend.get_metadata("generated/missing.pdf") is None


@pytest.mark.asyncio
async def test_get_metadata_access_denied(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    s3_store.add("generated/a.pdf")
    s3_store.errors[("head_object", "generated/a.pdf")] = "AccessDenied"

    with pytest.raises(TransportError):
        await r2_backend.get_metadata("generated/a.pdf")


@pytest.mark.asyncio
async def test_download_and_stream(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    s3_store.add("generated/a.pdf", body=b"abcdefghij")

    assert await r2_backend.download("generated/a.pdf") == b"abcdefghij"
    chunks = [chunk async for chunk in r2_backend.stream("generated/a.pdf", chunk_size=4)]
    assert chunks == [b"abcd", b"efgh", b"ij"]


@pytest.mark.asyncio
async def test_download_missing_object(r2_backend: CloudflareR2Backend):
    with pytest.raises(ObjectNotFoundError):
        await r2_backend.download("generated/missing.pdf")


@pytest.mark.asyncio
async def test_delete_is_idempotent(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    s3_store.add("generated/a.pdf")

    await r2_backend.delete("generated/a.pdf")
    await r2_backend.delete("generated/a.pdf")

    assert "generated/a.pdf" not in s3_store.objects


@pytest.mark.asyncio
async def test_delete_rejects_unsafe_key(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    with pytest.raises(UnsafeKeyError):
        await r2_backend.delete("generated/")
    assert s3_store.calls == []


# =============================================================================
# Metadata rewrite
# =============================================================================


@pytest.mark.asyncio
async def test_rewrite_with_metadata_reuploads_object(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    original = wire_metadata("bulk", "7d", age=None)
    original["created"] = "2025-05-01T00:00:00.000Z"
    s3_store.add("generated/certificates_1.pdf", body=b"%PDF", metadata=original)

    merged = await r2_backend.rewrite_with_metadata(
        "generated/certificates_1.pdf", {"emailsent": "true", "created": "2030-01-01T00:00:00.000Z"}
    )

    stored = s3_store.objects["generated/certificates_1.pdf"]
    assert stored["Body"] == b"%PDF"
    assert stored["ContentType"] == "application/pdf"
    assert stored["Metadata"] == merged
    assert merged["emailsent"] == "true"
    assert merged["retention"] == "7d"
    assert merged["created"] == "2025-05-01T00:00:00.000Z"
    operations = [op for op, _ in s3_store.calls]
    assert operations == ["head_object", "get_object", "put_object"]


@pytest.mark.asyncio
async def test_rewrite_missing_object(r2_backend: CloudflareR2Backend, s3_store: FakeS3Store):
    with pytest.raises(ObjectNotFoundError):
        await r2_backend.rewrite_with_metadata("generated/missing.pdf", {"emailsent": "true"})
    assert "generated/missing.pdf" not in s3_store.objects


# =============================================================================
# URLs
# =============================================================================


@pytest.mark.asyncio
async def test_r2_resolve_url_prefers_custom_domain(r2_backend: CloudflareR2Backend):
    assert await r2_backend.resolve_url("generated/a.pdf") == "https://files.example.com/generated/a.pdf"


def test_r2_url_prefixes(r2_backend: CloudflareR2Backend):
    assert r2_backend.url_prefixes() == [
        "https://files.example.com/",
        "https://account.r2.cloudflarestorage.com/certs/",
    ]


def test_r2_client_uses_path_style(r2_backend: CloudflareR2Backend):
    assert r2_backend.region == "auto"
    assert r2_backend.client_config.s3["addressing_style"] == "path"


@pytest.mark.asyncio
async def test_s3_resolve_url_signs_without_cdn(s3_backend: AmazonS3Backend):
    url = await s3_backend.resolve_url("generated/a.pdf")
    assert url == "https://signed.example.com/certs/generated/a.pdf?X-Amz-Expires=86400"

    forced = await s3_backend.resolve_url("generated/a.pdf", force_download=True)
    assert forced.endswith("&response-content-disposition=attachment")


@pytest.mark.asyncio
async def test_s3_resolve_url_uses_cloudfront(s3_store: FakeS3Store):
    backend = AmazonS3Backend(
        bucket_name="certs",
        access_key="k",
        secret_key="s",
        region="eu-west-3",
        cloudfront_url="https://d111.cloudfront.net/",
    )
    backend.session = FakeSession(s3_store)

    assert await backend.resolve_url("generated/a.pdf") == "https://d111.cloudfront.net/generated/a.pdf"
    assert backend.url_prefixes()[0] == "https://d111.cloudfront.net/"


def test_s3_url_prefixes(s3_backend: AmazonS3Backend):
    assert s3_backend.url_prefixes() == [
        "https://certs.s3.eu-west-3.amazonaws.com/",
        "https://certs.s3.amazonaws.com/",
        "https://s3.eu-west-3.amazonaws.com/certs/",
    ]


def test_s3_client_uses_regional_endpoint(s3_backend: AmazonS3Backend):
    assert s3_backend.endpoint_url is None
    assert s3_backend.client_config.s3["addressing_style"] == "auto"


def test_shared_backend_requires_endpoint_prefixes():
    with pytest.raises(TypeError):
        S3CompatibleBackend(bucket_name="certs", access_key="k", secret_key="s", region="auto")
