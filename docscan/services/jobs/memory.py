"""
In-memory job store (for demo and tests).

Status changes are either set directly with ``set_status`` or scripted per job
with ``script`` so each status query advances one step, simulating a worker.
"""
from collections import deque
from datetime import datetime, UTC
from typing import Dict, Optional
import uuid
from ...core.errors import JobNotFound
from ...models.job import JobStatus, JobStatusReport, OcrJob
from .job_store_base import JobStoreBase


class InMemoryJobStore(JobStoreBase):
    def __init__(self):
        self._jobs: Dict[str, OcrJob] = {}
        self._scripts: Dict[str, deque] = {}
        self._default_script: list[JobStatusReport] = []
        self.status_queries = 0

    async def create_job(self, input_refs: list[str]) -> OcrJob:
        """Create a new job and return it"""
        if not input_refs:
            raise ValueError("A job needs at least one input reference")
        job = OcrJob(job_id=str(uuid.uuid4()), input_refs=list(input_refs))
        self._jobs[job.job_id] = job
        if self._default_script:
            self._scripts[job.job_id] = deque(self._default_script)
        return job

    async def get_job_status(self, job_id: str) -> JobStatusReport:
        self.status_queries += 1
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)

        script = self._scripts.get(job_id)
        if script:
            report = script.popleft()
            self.set_status(job_id, report.status, result=report.result, error=report.error)
            return report

        return JobStatusReport(status=job.status, result=job.result, error=job.error)

    async def get_job(self, job_id: str) -> Optional[OcrJob]:
        return self._jobs.get(job_id)

    async def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 10) -> list[OcrJob]:
        jobs = [j for j in self._jobs.values() if status is None or j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    async def record_status(self, job_id: str, status: JobStatus, result=None, error=None) -> bool:
        if job_id not in self._jobs:
            return False
        self.set_status(job_id, status, result=result, error=error)
        return True

    def set_status(self, job_id: str, status: JobStatus, result=None, error=None) -> None:
        """Simulate the worker moving a job to ``status``"""
        job = self._jobs[job_id]
        self._jobs[job_id] = job.model_copy(update={
            "status": status,
            "result": result if result is not None else job.result,
            "error": error if error is not None else job.error,
            "updated_at": datetime.now(UTC),
        })

    def script(self, job_id: str, *reports: JobStatusReport) -> None:
        """Queue the reports returned by the next status queries for ``job_id``"""
        self._scripts.setdefault(job_id, deque()).extend(reports)

    def script_new_jobs(self, *reports: JobStatusReport) -> None:
        """Queue the same report sequence for every job created from now on"""
        self._default_script = list(reports)
