"""Durable object storage for generated thumbnails (Supabase Storage)."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Optional

import httpx

from config import settings
from services.errors import ArtifactPersistError

logger = logging.getLogger(__name__)

EXTENSION_BY_MIME = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


def _content_type(response: httpx.Response) -> str:
    raw = (response.headers.get("content-type") or "").split(";")[0].strip().lower()
    return raw if raw in EXTENSION_BY_MIME else "image/png"


def build_object_key(owner_id: str, prefix: str, extension: str = "png") -> str:
    """Collision-resistant key: owner namespace, epoch millis and a random token."""
    timestamp = int(time.time() * 1000)
    token = secrets.token_hex(6)
    return f"{owner_id}/{prefix}_{timestamp}_{token}.{extension}"


class SupabaseArtifactStore:
    """Downloads provider-hosted images and re-uploads them to a public bucket."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        download_timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.download_timeout = download_timeout
        self.transport = transport

    @property
    def public_prefix(self) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/"

    def public_url(self, key: str) -> str:
        return f"{self.public_prefix}{key}"

    def is_durable_url(self, url: Optional[str]) -> bool:
        return bool(url) and bool(self.base_url) and str(url).startswith(self.public_prefix)

    async def persist(self, source_url: str, owner_id: str, prefix: str = "thumbnail") -> str:
        if not self.base_url or not self.service_key:
            raise ArtifactPersistError("Artifact store is not configured.")

        async with httpx.AsyncClient(transport=self.transport, follow_redirects=True) as client:
            try:
                download = await client.get(source_url, timeout=self.download_timeout)
                download.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error("Error downloading generated image %s: %s", source_url, exc)
                raise ArtifactPersistError(f"Could not download generated image: {exc}") from exc

            if not download.content:
                raise ArtifactPersistError("Generated image download was empty.")

            content_type = _content_type(download)
            key = build_object_key(owner_id, prefix, EXTENSION_BY_MIME[content_type])
            try:
                upload = await client.post(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{key}",
                    content=download.content,
                    headers={
                        "Authorization": f"Bearer {self.service_key}",
                        "apikey": self.service_key,
                        "Content-Type": content_type,
                        "Cache-Control": "3600",
                        "x-upsert": "false",
                    },
                    timeout=self.download_timeout,
                )
                upload.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error("Error uploading %s to storage: %s", key, exc)
                raise ArtifactPersistError(f"Could not upload generated image: {exc}") from exc

        public_url = self.public_url(key)
        logger.info("Persisted generated image to %s", public_url)
        return public_url


def build_artifact_store() -> SupabaseArtifactStore:
    return SupabaseArtifactStore(
        base_url=settings.SUPABASE_URL,
        service_key=settings.SUPABASE_SERVICE_KEY,
        bucket=settings.STORAGE_BUCKET,
        download_timeout=float(settings.ARTIFACT_DOWNLOAD_TIMEOUT_SECONDS),
    )
