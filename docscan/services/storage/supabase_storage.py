"""
Supabase Storage backend.

Talks to the Storage REST API directly with httpx so the same async client
can be shared with the job store and mocked with respx in tests.
"""

from urllib.parse import quote
import httpx
from loguru import logger
from ...core.errors import StorageAuthError, StorageError, StorageTransientError
from .object_storage_base import ObjectStorageBase


def raise_for_storage_status(response: httpx.Response, what: str) -> None:
    """Map an HTTP error response to the storage error taxonomy"""
    if response.is_success:
        return
    code = response.status_code
    detail = response.text[:200]
    if code in (401, 403):
        raise StorageAuthError(f"{what} rejected ({code}): {detail}")
    if code == 429 or code >= 500:
        raise StorageTransientError(f"{what} failed ({code}): {detail}")
    raise StorageError(f"{what} failed ({code}): {detail}")


class SupabaseObjectStorage(ObjectStorageBase):
    """
    Usage:
        storage = SupabaseObjectStorage(url=settings.supabase_url, api_key=settings.supabase_key)
        url = await storage.put("ocr-images", "abc/page-000.jpg", data, "image/jpeg")
    """

    def __init__(self, url: str, api_key: str, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, **extra: str) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }
        headers.update(extra)
        return headers

    def _object_url(self, bucket: str, key: str) -> str:
        return f"{self.url}/storage/v1/object/{quote(bucket)}/{quote(key)}"

    async def put(self, bucket: str, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            response = await self.client.post(
                self._object_url(bucket, key),
                content=data,
                headers=self._headers(**{"Content-Type": content_type, "x-upsert": "true"}),
            )
        except httpx.TransportError as e:
            raise StorageTransientError(f"Upload of {key} failed: {e}") from e

        raise_for_storage_status(response, f"Upload of {bucket}/{key}")
        logger.debug("Supabase object stored", bucket=bucket, key=key, bytes=len(data))
        return self.public_url(bucket, key)

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            response = await self.client.head(self._object_url(bucket, key), headers=self._headers())
        except httpx.TransportError as e:
            raise StorageTransientError(f"Lookup of {key} failed: {e}") from e

        if response.status_code in (400, 404):
            return False
        raise_for_storage_status(response, f"Lookup of {bucket}/{key}")
        return True

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{quote(bucket)}/{quote(key)}"

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
