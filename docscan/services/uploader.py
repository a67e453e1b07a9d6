"""
Uploads the pages of a capture session to object storage.

Each page is read inside a scoped file acquisition, put under a key derived
from (session id, page index), and retried with exponential backoff on
transient failures. Pages of a session are uploaded concurrently, bounded by
the uploader's semaphore.
"""

import asyncio
import mimetypes
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
import httpx
from loguru import logger
from ..core.config import settings
from ..core.errors import StorageAuthError, StorageTransientError, UploadFailed
from ..models.capture import CapturedPage, CaptureSession, StorageObject, object_key
from .storage.object_storage_base import ObjectStorageBase

TRANSIENT_ERRORS = (StorageTransientError, httpx.TransportError, TimeoutError, ConnectionError)


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff: base * factor ** (retry - 1), capped at max_delay"""
    max_retries: int = 3
    base: float = 0.5
    factor: float = 2.0
    max_delay: float = 5.0

    def delay(self, retry: int) -> float:
        return min(self.base * (self.factor ** (retry - 1)), self.max_delay)

    @classmethod
    def from_settings(cls) -> "BackoffPolicy":
        return cls(
            max_retries=settings.upload_max_retries,
            base=settings.upload_backoff_base,
            factor=settings.upload_backoff_factor,
            max_delay=settings.upload_backoff_max,
        )


class StorageUploader:
    def __init__(
        self,
        storage: ObjectStorageBase,
        bucket: Optional[str] = None,
        concurrency: Optional[int] = None,
        backoff: Optional[BackoffPolicy] = None,
        attempt_timeout: Optional[float] = None,
        delete_local_after_upload: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cache_limit: int = 1024,
    ):
        self.storage = storage
        self.bucket = bucket or settings.storage_bucket
        self.concurrency = concurrency or settings.upload_concurrency
        self.backoff = backoff or BackoffPolicy.from_settings()
        self.attempt_timeout = attempt_timeout if attempt_timeout is not None else settings.upload_attempt_timeout
        self.delete_local_after_upload = (
            settings.delete_local_after_upload if delete_local_after_upload is None else delete_local_after_upload
        )
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(self.concurrency)
        self.cache_limit = cache_limit
        # Objects already acknowledged by storage, keyed by object key, least recently used first
        self._uploaded: OrderedDict[str, StorageObject] = OrderedDict()

    async def upload(self, session: CaptureSession) -> list[StorageObject]:
        """
        Upload every page of ``session``.

        Returns:
            One StorageObject per page, ordered by page index

        Raises:
            UploadFailed: at least one page failed permanently; carries the
                successfully uploaded subset and the failed page indices
        """
        session.seal()
        if not session.pages:
            raise UploadFailed(f"Session {session.session_id} has no pages")

        logger.info(
            "Uploading session",
            session_id=session.session_id,
            pages=len(session.pages),
            bucket=self.bucket,
            concurrency=self.concurrency,
        )

        results = await asyncio.gather(
            *(self._upload_page(session.session_id, page) for page in session.pages),
            return_exceptions=True,
        )

        uploaded: list[StorageObject] = []
        failed: list[int] = []
        first_error: Optional[BaseException] = None
        for page, result in zip(session.pages, results):
            if isinstance(result, StorageObject):
                uploaded.append(result)
                continue
            if isinstance(result, asyncio.CancelledError):
                raise result
            failed.append(page.index)
            if first_error is None or isinstance(result, StorageAuthError):
                first_error = result

        if failed:
            logger.error(
                "Upload failed",
                session_id=session.session_id,
                uploaded=len(uploaded),
                failed_pages=failed,
                error=str(first_error),
            )
            raise UploadFailed(
                f"{len(failed)} of {len(session.pages)} pages failed to upload: {first_error}",
                uploaded=uploaded,
                failed_pages=failed,
                cause=first_error,
            )

        logger.info("Session uploaded", session_id=session.session_id, objects=len(uploaded))
        return uploaded

    async def upload_page(self, session_id: str, page: CapturedPage) -> StorageObject:
        """Upload (or re-upload) a single page, e.g. to retry a page listed in UploadFailed"""
        return await self._upload_page(session_id, page)

    async def _upload_page(self, session_id: str, page: CapturedPage) -> StorageObject:
        key = object_key(session_id, page.index, page.path.suffix)
        existing = self._uploaded.get(key)
        if existing is not None:
            self._uploaded.move_to_end(key)
            logger.debug("Page already uploaded", key=key)
            return existing

        async with self._semaphore:
            with page.path.open("rb") as f:
                data = f.read()
                url = await self._put_with_retry(key, data, _content_type(page))

            stored = StorageObject(bucket=self.bucket, key=key, url=url, page_index=page.index)
            self._remember(stored)

        if self.delete_local_after_upload:
            page.path.unlink(missing_ok=True)

        logger.info("Page uploaded", key=key, bytes=len(data))
        return stored

    def forget(self, session_id: str) -> None:
        """Drop the cached acknowledgements for a session so its pages are put again"""
        prefix = f"{session_id}/"
        for key in [k for k in self._uploaded if k.startswith(prefix)]:
            del self._uploaded[key]

    def _remember(self, stored: StorageObject) -> None:
        self._uploaded[stored.key] = stored
        self._uploaded.move_to_end(stored.key)
        while len(self._uploaded) > self.cache_limit:
            self._uploaded.popitem(last=False)

    async def _put_with_retry(self, key: str, data: bytes, content_type: str) -> str:
        retry = 0
        while True:
            try:
                return await asyncio.wait_for(
                    self.storage.put(self.bucket, key, data, content_type),
                    timeout=self.attempt_timeout,
                )
            except StorageAuthError:
                logger.error("Upload not authorized, giving up", key=key)
                raise
            except TRANSIENT_ERRORS as e:
                retry += 1
                if retry > self.backoff.max_retries:
                    logger.error(
                        "Upload retries exhausted",
                        key=key,
                        attempts=retry,
                        error=str(e) or e.__class__.__name__,
                    )
                    raise
                delay = self.backoff.delay(retry)
                logger.warning(
                    "Transient upload error, retrying",
                    key=key,
                    retry=retry,
                    delay=delay,
                    error=str(e) or e.__class__.__name__,
                )
                await self._sleep(delay)


def _content_type(page: CapturedPage) -> str:
    guessed, _ = mimetypes.guess_type(page.path.name)
    return guessed or "application/octet-stream"
