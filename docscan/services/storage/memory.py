"""
In-memory object storage (for demo and tests).
In production, use Supabase Storage or Azure Blob Storage.
"""
from typing import Dict, Tuple
from .object_storage_base import ObjectStorageBase


class InMemoryObjectStorage(ObjectStorageBase):
    def __init__(self, base_url: str = "memory://"):
        self.base_url = base_url.rstrip("/")
        self._objects: Dict[Tuple[str, str], bytes] = {}
        self._content_types: Dict[Tuple[str, str], str] = {}
        self.put_calls = 0

    async def put(self, bucket: str, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store (or overwrite) an object"""
        self.put_calls += 1
        self._objects[(bucket, key)] = bytes(data)
        self._content_types[(bucket, key)] = content_type
        return self.public_url(bucket, key)

    async def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self._objects

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/{bucket}/{key}"

    def get(self, bucket: str, key: str) -> bytes | None:
        return self._objects.get((bucket, key))

    def keys(self, bucket: str) -> list[str]:
        """List object keys in a bucket (for debugging)"""
        return sorted(k for b, k in self._objects if b == bucket)
