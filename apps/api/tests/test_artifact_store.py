import re

import httpx
import pytest

from services.artifact_store import SupabaseArtifactStore, build_object_key
from services.errors import ArtifactPersistError

SUPABASE_URL = "https://store.supabase.co"
SOURCE_URL = "https://provider.example/primary.png"


def _store(handler) -> SupabaseArtifactStore:
    return SupabaseArtifactStore(
        base_url=SUPABASE_URL,
        service_key="service-key",
        bucket="thumbnails",
        transport=httpx.MockTransport(handler),
    )


def test_object_key_is_namespaced_by_owner():
    key = build_object_key("user-1", "text_thumbnail", "png")
    assert re.fullmatch(r"user-1/text_thumbnail_\d{13}_[0-9a-f]{12}\.png", key)
    assert build_object_key("user-1", "text_thumbnail") != key


@pytest.mark.asyncio
async def test_persist_downloads_then_uploads_to_public_bucket():
    uploads = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=b"\x89PNG-bytes", headers={"content-type": "image/png"})
        uploads.append(request)
        return httpx.Response(200, json={"Key": "thumbnails/whatever"})

    store = _store(handler)
    url = await store.persist(SOURCE_URL, "user-1", "youtube_thumbnail")

    assert url.startswith(f"{SUPABASE_URL}/storage/v1/object/public/thumbnails/user-1/youtube_thumbnail_")
    assert url.endswith(".png")
    assert store.is_durable_url(url)
    assert not store.is_durable_url(SOURCE_URL)

    upload = uploads[0]
    assert upload.url.path.startswith("/storage/v1/object/thumbnails/user-1/youtube_thumbnail_")
    assert upload.headers["authorization"] == "Bearer service-key"
    assert upload.headers["content-type"] == "image/png"
    assert upload.content == b"\x89PNG-bytes"


@pytest.mark.asyncio
async def test_jpeg_source_keeps_jpeg_extension():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=b"jpeg", headers={"content-type": "image/jpeg; charset=binary"})
        return httpx.Response(200, json={})

    url = await _store(handler).persist(SOURCE_URL, "user-1")
    assert url.endswith(".jpg")


@pytest.mark.asyncio
async def test_download_failure_raises_persist_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with pytest.raises(ArtifactPersistError, match="download"):
        await _store(handler).persist(SOURCE_URL, "user-1")


@pytest.mark.asyncio
async def test_upload_failure_raises_persist_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=b"png", headers={"content-type": "image/png"})
        return httpx.Response(403, json={"error": "Unauthorized"})

    with pytest.raises(ArtifactPersistError, match="upload"):
        await _store(handler).persist(SOURCE_URL, "user-1")


@pytest.mark.asyncio
async def test_unconfigured_store_refuses_to_persist():
    store = SupabaseArtifactStore(base_url="", service_key="", bucket="thumbnails")
    with pytest.raises(ArtifactPersistError, match="not configured"):
        await store.persist(SOURCE_URL, "user-1")
