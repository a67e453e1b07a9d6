"""
Supabase (PostgREST) job store.

The ``ocr_jobs`` table is shared with the desktop OCR worker, which picks up
``pending`` rows, moves them to ``processing`` and finally writes ``result``
or ``error``.
"""

import json
from datetime import datetime, UTC
from typing import Any, Optional
import httpx
from loguru import logger
from ...core.errors import JobNotFound, JobStoreError
from ...models.job import JobStatus, JobStatusReport, OcrJob
from .job_store_base import JobStoreBase


class SupabaseJobStore(JobStoreBase):
    def __init__(
        self,
        url: str,
        api_key: str,
        table: str = "ocr_jobs",
        bucket: str = "ocr-images",
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.bucket = bucket
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def table_url(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self, **extra: str) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }
        headers.update(extra)
        return headers

    def _image_url(self, ref: str) -> str:
        """Public URL the worker downloads the first page from"""
        if ref.startswith(("http://", "https://")):
            return ref
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{ref}"

    async def _request(self, method: str, what: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, self.table_url, **kwargs)
        except httpx.TransportError as e:
            raise JobStoreError(f"{what} failed: {e}") from e

        if not response.is_success:
            error = JobStoreError(f"{what} failed ({response.status_code}): {response.text[:200]}")
            if response.status_code in (401, 403):
                error.category = "permission"
            elif response.status_code < 500 and response.status_code != 429:
                error.category = "permanent"
            raise error

        try:
            return response.json()
        except ValueError as e:
            error = JobStoreError(f"{what} returned a non-JSON body: {response.text[:200]}")
            error.category = "permanent"
            raise error from e

    async def create_job(self, input_refs: list[str]) -> OcrJob:
        if not input_refs:
            raise ValueError("A job needs at least one input reference")

        now = datetime.now(UTC).isoformat()
        body = {
            "input_refs": list(input_refs),
            "image_url": self._image_url(input_refs[0]),
            "image_name": input_refs[0].rsplit("/", 1)[-1],
            "status": "pending",
            "created_at": now,
        }
        rows = await self._request(
            "POST",
            "Job creation",
            json=body,
            headers=self._headers(Prefer="return=representation"),
        )
        if not rows:
            raise JobStoreError("Job creation returned no row")

        row = rows[0] if isinstance(rows, list) else rows
        job = self._decode(row).model_copy(update={"status": JobStatus.CREATED})
        logger.info("OCR job created", job_id=job.job_id, inputs=len(input_refs))
        return job

    async def get_job_status(self, job_id: str) -> JobStatusReport:
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return JobStatusReport(status=job.status, result=job.result, error=job.error)

    async def get_job(self, job_id: str) -> Optional[OcrJob]:
        rows = await self._request(
            "GET",
            f"Fetching job {job_id}",
            params={"id": f"eq.{job_id}", "select": "*"},
            headers=self._headers(),
        )
        if not rows:
            return None
        return self._decode(rows[0])

    async def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 10) -> list[OcrJob]:
        params = {"select": "*", "order": "created_at.desc", "limit": str(limit)}
        if status is not None:
            remote = "pending" if JobStatus(status) is JobStatus.QUEUED else JobStatus(status).value
            params["status"] = f"eq.{remote}"

        rows = await self._request("GET", "Listing jobs", params=params, headers=self._headers())
        return [self._decode(row) for row in rows]

    def _decode(self, row: Any) -> OcrJob:
        try:
            return self._row_to_job(row)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Undecodable job row", table=self.table, error=str(e))
            error = JobStoreError(f"Malformed row in {self.table}: {e!r}")
            error.category = "permanent"
            raise error from e

    @staticmethod
    def _row_to_job(row: dict) -> OcrJob:
        result = row.get("result")
        if isinstance(result, str):
            try:
                result = json.loads(result)
            except ValueError:
                # Keep the raw string; the extractor reports it as unparseable
                pass

        input_refs = row.get("input_refs") or ([row["image_url"]] if row.get("image_url") else [])
        created_at = row.get("created_at") or datetime.now(UTC).isoformat()
        updated_at = row.get("updated_at") or row.get("completed_at") or row.get("started_at") or created_at

        return OcrJob(
            job_id=str(row["id"]),
            input_refs=input_refs,
            status=JobStatus.parse(row.get("status") or "pending"),
            result=result,
            error=row.get("error"),
            created_at=created_at,
            updated_at=updated_at,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
