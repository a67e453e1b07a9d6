"""
Abstract base class for object storage backends.

Defines the interface the uploader depends on, enabling dependency injection
and easy swapping of storage services.
"""

from abc import ABC, abstractmethod


class ObjectStorageBase(ABC):
    """
    Abstract base class for durable key-addressed binary storage.

    Implementations:
    - In-memory (for testing/demo)
    - Supabase Storage (REST via httpx)
    - Azure Blob Storage

    Objects are addressed by ``(bucket, key)``. ``put`` must be idempotent:
    re-putting the same key overwrites the object rather than creating a
    second one.

    Implementations signal failures with ``StorageAuthError`` (never retried)
    or ``StorageTransientError`` (safe to retry).
    """

    @abstractmethod
    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Store bytes under ``(bucket, key)``, overwriting any existing object.

        Args:
            bucket: Bucket / container name
            key: Object key
            data: Object content
            content_type: MIME type stored with the object

        Returns:
            URL or reference of the stored object
        """
        pass

    @abstractmethod
    async def exists(self, bucket: str, key: str) -> bool:
        """
        Check whether an object is stored under ``(bucket, key)``.
        """
        pass

    @abstractmethod
    def public_url(self, bucket: str, key: str) -> str:
        """
        URL the OCR worker can fetch the object from.
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the backend"""
        return None
