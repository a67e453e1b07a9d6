"""
Azure Blob Storage backend.

Uses the synchronous ``azure-storage-blob`` client in a worker thread so the
uploader's event loop is never blocked.
"""

import asyncio
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.storage.blob import BlobServiceClient, ContentSettings
from loguru import logger
from ...core.errors import StorageAuthError, StorageError, StorageTransientError
from .object_storage_base import ObjectStorageBase


class AzureBlobObjectStorage(ObjectStorageBase):
    """
    Usage:
        storage = AzureBlobObjectStorage.from_connection_string(conn_str)

        # Or with an existing client (tests inject a mock here)
        storage = AzureBlobObjectStorage(service_client=client)
    """

    def __init__(self, service_client: BlobServiceClient):
        self.service_client = service_client

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "AzureBlobObjectStorage":
        logger.info("Connecting to Azure Blob Storage")
        return cls(BlobServiceClient.from_connection_string(connection_string))

    async def put(self, bucket: str, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        return await asyncio.to_thread(self._put_sync, bucket, key, data, content_type)

    def _put_sync(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        blob_client = self.service_client.get_blob_client(container=bucket, blob=key)
        try:
            blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except ClientAuthenticationError as e:
            raise StorageAuthError(f"Upload of {bucket}/{key} rejected: {e}") from e
        except (ServiceRequestError, ServiceResponseError) as e:
            raise StorageTransientError(f"Upload of {bucket}/{key} failed: {e}") from e
        except HttpResponseError as e:
            raise self._map_http_error(e, f"Upload of {bucket}/{key}") from e

        logger.debug("Azure blob stored", container=bucket, blob=key, bytes=len(data))
        return blob_client.url

    async def exists(self, bucket: str, key: str) -> bool:
        return await asyncio.to_thread(self._exists_sync, bucket, key)

    def _exists_sync(self, bucket: str, key: str) -> bool:
        blob_client = self.service_client.get_blob_client(container=bucket, blob=key)
        try:
            return blob_client.exists()
        except ResourceNotFoundError:
            return False
        except (ServiceRequestError, ServiceResponseError) as e:
            raise StorageTransientError(f"Lookup of {bucket}/{key} failed: {e}") from e

    def public_url(self, bucket: str, key: str) -> str:
        return self.service_client.get_blob_client(container=bucket, blob=key).url

    @staticmethod
    def _map_http_error(error: HttpResponseError, what: str) -> StorageError:
        code = error.status_code or 0
        if code in (401, 403):
            return StorageAuthError(f"{what} rejected ({code}): {error.message}")
        if code == 429 or code >= 500:
            return StorageTransientError(f"{what} failed ({code}): {error.message}")
        return StorageError(f"{what} failed ({code}): {error.message}")

    async def close(self) -> None:
        await asyncio.to_thread(self.service_client.close)
