"""
Abstract base class for OCR job stores.

Defines the interface that all job stores must implement, enabling dependency
injection and easy swapping of backends.
"""

from abc import ABC, abstractmethod
from typing import Optional
from ...models.job import JobStatus, JobStatusReport, OcrJob


class JobStoreBase(ABC):
    """
    Abstract base class for the job store / queue the OCR worker consumes.

    Implementations can use:
    - In-memory storage (for testing/demo)
    - SQLite (for single-instance deployments, survives restarts)
    - Supabase / PostgREST (shared with the OCR worker)
    """

    @abstractmethod
    async def create_job(self, input_refs: list[str]) -> OcrJob:
        """
        Create a job record referencing uploaded objects.

        Args:
            input_refs: Object keys or URLs of the uploaded pages (1..N)

        Returns:
            The accepted job, with its server-assigned ID and status CREATED
        """
        pass

    @abstractmethod
    async def get_job_status(self, job_id: str) -> JobStatusReport:
        """
        Query the current status of a job.

        Returns:
            JobStatusReport with status, and result (completed) or error (failed)

        Raises:
            JobNotFound: no job with this ID
        """
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[OcrJob]:
        """
        Get the full job record by ID, or None if not found.
        """
        pass

    @abstractmethod
    async def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 10) -> list[OcrJob]:
        """
        List jobs, newest first, optionally filtered by status.
        """
        pass

    async def record_status(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[dict | str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """
        Write a status as the OCR worker would (local workers, demos, tests).

        The tracker never calls this; stores whose worker is remote may ignore it.

        Returns:
            True if a record was updated
        """
        return False

    async def close(self) -> None:
        return None
