from datetime import datetime, UTC
from enum import Enum
from typing import Any
from loguru import logger
from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    CREATED = "created"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: str) -> "JobStatus":
        """
        Parse a status reported by a job store.

        The worker's ``pending`` means queued. Statuses this client does not
        know (e.g. a worker-side ``cancelled``) are treated as still queued so
        tracking continues until a known terminal state or the timeout.
        """
        value = (value or "").strip().lower()
        if value == "pending":
            return cls.QUEUED
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown job status, treating as queued", status=value)
            return cls.QUEUED


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT})

_RANKS = {
    JobStatus.CREATED: 0,
    JobStatus.QUEUED: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
    JobStatus.TIMED_OUT: 3,
}


class JobStatusReport(BaseModel):
    """What a job store returns for a single status query"""
    status: JobStatus
    result: dict[str, Any] | str | None = None
    error: str | None = None


class OcrJob(BaseModel):
    job_id: str
    input_refs: list[str]
    status: JobStatus = JobStatus.CREATED
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    result: dict[str, Any] | str | None = None
    error: str | None = None
