"""
OCR job lifecycle tracking.

Jobs move ``created → queued → processing → completed | failed``. Queued and
processing are reported by the worker through the job store; the tracker only
observes them. Status updates may be delivered more than once or out of
order, so only forward transitions are applied.

Observation is polling with an adaptive interval: start at the initial
interval, double after every unchanged observation up to the ceiling, reset
on any state change. The whole observation is bounded by an overall timeout
after which the job is reported as timed out locally; the server-side job is
left alone, as it is on cancellation.
"""

import asyncio
from datetime import datetime, UTC
from typing import Callable, Optional
from loguru import logger
from ..core.config import settings
from ..core.errors import Cancelled, JobFailed, JobNotFound, JobStoreError, JobTimedOut
from ..models.capture import StorageObject
from ..models.job import JobStatus, OcrJob
from .jobs.job_store_base import JobStoreBase

TransitionCallback = Callable[[OcrJob], None]


class JobStateMachine:
    """Forward-only job status; repeated or stale observations are ignored"""

    def __init__(self, status: JobStatus = JobStatus.CREATED):
        self.status = status
        self.history: list[JobStatus] = [status]

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def observe(self, status: JobStatus) -> bool:
        """
        Apply an observed status.

        Returns:
            True if the state changed, False if the observation was ignored
        """
        status = JobStatus(status)
        if self.is_terminal or status.rank <= self.status.rank:
            if status != self.status:
                logger.debug("Ignoring stale job status", current=self.status.value, observed=status.value)
            return False

        self.status = status
        self.history.append(status)
        return True


class JobTracker:
    def __init__(
        self,
        job_store: JobStoreBase,
        initial_interval: Optional[float] = None,
        max_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.job_store = job_store
        self.initial_interval = initial_interval or settings.poll_initial_interval
        self.max_interval = max_interval or settings.poll_max_interval
        self.timeout = timeout or settings.job_timeout

    async def submit(self, objects: list[StorageObject]) -> OcrJob:
        """Create the job record for a set of uploaded pages"""
        refs = [obj.key for obj in sorted(objects, key=lambda o: o.page_index)]
        job = await self.job_store.create_job(refs)
        logger.info("OCR job submitted", job_id=job.job_id, inputs=len(refs))
        return job

    async def resume(
        self,
        job_id: str,
        cancel: Optional[asyncio.Event] = None,
        on_transition: Optional[TransitionCallback] = None,
    ) -> OcrJob:
        """Track a job persisted by an earlier run"""
        job = await self.job_store.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        logger.info("Resuming OCR job", job_id=job_id, status=job.status.value)
        return await self.track(job, cancel=cancel, on_transition=on_transition)

    async def track(
        self,
        job: OcrJob,
        cancel: Optional[asyncio.Event] = None,
        on_transition: Optional[TransitionCallback] = None,
    ) -> OcrJob:
        """
        Observe ``job`` until it reaches a terminal state.

        Returns:
            The completed job, carrying its result payload

        Raises:
            JobFailed: the worker reported failure
            JobTimedOut: no terminal state within the overall timeout
            Cancelled: ``cancel`` was set; no further status queries are made
        """
        machine = JobStateMachine(job.status)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        interval = self.initial_interval
        polls = 0

        logger.info("Tracking OCR job", job_id=job.job_id, status=job.status.value, timeout=self.timeout)

        while not machine.is_terminal:
            if cancel is not None and cancel.is_set():
                raise self._cancelled(job, polls)

            polls += 1
            try:
                report = await self.job_store.get_job_status(job.job_id)
            except JobNotFound:
                raise
            except JobStoreError as e:
                if e.category != "transient":
                    raise
                logger.warning("Job status query failed, will retry", job_id=job.job_id, error=e.message)
                report = None

            # Cancel set while the query was in flight wins over its answer
            if cancel is not None and cancel.is_set():
                raise self._cancelled(job, polls)

            if report is not None and machine.observe(report.status):
                job = job.model_copy(update={
                    "status": machine.status,
                    "result": report.result if machine.status is JobStatus.COMPLETED else None,
                    "error": report.error if machine.status is JobStatus.FAILED else None,
                    "updated_at": datetime.now(UTC),
                })
                interval = self.initial_interval
                logger.info("OCR job status changed", job_id=job.job_id, status=job.status.value)
                if on_transition is not None:
                    on_transition(job)

            if machine.is_terminal:
                break

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise self._timed_out(job, machine, polls, on_transition)

            if await self._wait(cancel, min(interval, remaining)):
                raise self._cancelled(job, polls)
            interval = min(interval * 2, self.max_interval)

            if loop.time() >= deadline:
                raise self._timed_out(job, machine, polls, on_transition)

        if machine.status is JobStatus.FAILED:
            logger.error("OCR job failed", job_id=job.job_id, reason=job.error)
            raise JobFailed(job.error, job_id=job.job_id)
        if machine.status is JobStatus.TIMED_OUT:
            raise JobTimedOut(job.job_id, self.timeout)

        logger.info("OCR job completed", job_id=job.job_id, polls=polls)
        return job

    @staticmethod
    async def _wait(cancel: Optional[asyncio.Event], delay: float) -> bool:
        """Suspend for ``delay`` seconds; returns True as soon as ``cancel`` is set"""
        if cancel is None:
            await asyncio.sleep(delay)
            return False
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
            return True
        except TimeoutError:
            return False

    def _timed_out(self, job, machine, polls, on_transition) -> JobTimedOut:
        machine.observe(JobStatus.TIMED_OUT)
        logger.warning(
            "OCR job timed out locally; job left running server-side",
            job_id=job.job_id,
            last_status=machine.history[-2].value,
            polls=polls,
        )
        if on_transition is not None:
            on_transition(job.model_copy(update={"status": JobStatus.TIMED_OUT, "updated_at": datetime.now(UTC)}))
        return JobTimedOut(job.job_id, self.timeout)

    @staticmethod
    def _cancelled(job: OcrJob, polls: int) -> Cancelled:
        logger.info("OCR job tracking cancelled", job_id=job.job_id, polls=polls)
        return Cancelled(f"Tracking of job {job.job_id} cancelled")
