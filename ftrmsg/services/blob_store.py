import httpx
from typing import Optional
from urllib.parse import quote

from ftrmsg.core.config import settings
from ftrmsg.core.errors import BlobStoreError
from ftrmsg.core.logging import get_logger

logger = get_logger(__name__)


class SupabaseBlobStore:
    """Video objects in a Supabase Storage bucket, keyed by owner-scoped path."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    def _headers(self, content_type: str = "application/json") -> dict:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": content_type,
        }

    def _object_url(self, *parts: str) -> str:
        return "/".join([self.base_url, "object", *parts])

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Blob store unreachable: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "Blob store request failed",
                method=method,
                status_code=response.status_code,
                response_text=response.text[:500]
            )
            raise BlobStoreError(f"Blob store returned {response.status_code}")
        return response

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Upload an object; the path must not already exist."""
        await self._request(
            "POST",
            self._object_url(self.bucket, quote(path)),
            content=content,
            headers={**self._headers(content_type), "x-upsert": "false"},
        )
        logger.info("Video uploaded", path=path, size_bytes=len(content))
        return path

    async def delete(self, path: str) -> None:
        await self._request(
            "DELETE",
            self._object_url(self.bucket),
            json={"prefixes": [path]},
            headers=self._headers(),
        )
        logger.info("Video deleted", path=path)

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        """Time-boxed read URL for an object."""
        response = await self._request(
            "POST",
            self._object_url("sign", self.bucket, quote(path)),
            json={"expiresIn": expires_in},
            headers=self._headers(),
        )
        signed = response.json().get("signedURL")
        if not signed:
            raise BlobStoreError("Blob store returned no signed URL")
        return f"{self.base_url}{signed}" if signed.startswith("/") else signed


def get_blob_store() -> SupabaseBlobStore:
    return SupabaseBlobStore(
        base_url=settings.STORAGE_URL,
        service_key=settings.STORAGE_SERVICE_KEY,
        bucket=settings.VIDEO_BUCKET,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )
