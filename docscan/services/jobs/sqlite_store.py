"""
SQLite-based OCR job store.

Provides persistent job records so tracking can resume after a restart, and
doubles as the queue a co-located OCR worker polls.
"""

import asyncio
import sqlite3
import json
import uuid
from datetime import datetime, UTC
from typing import Optional
from loguru import logger
from ...core.errors import JobNotFound, JobStoreError
from ...models.job import JobStatus, JobStatusReport, OcrJob
from .job_store_base import JobStoreBase

_COLUMNS = "id, input_refs, status, result, error, created_at, updated_at"


class SQLiteJobStore(JobStoreBase):
    """
    SQLite-backed job store with persistent storage.

    Features:
    - Persistent storage across application restarts
    - Status-based filtering for monitoring
    - Blocking sqlite3 calls run in a worker thread
    """

    def __init__(self, db_path: str = "ocr_jobs.db"):
        """
        Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (default: ocr_jobs.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create ocr_jobs table if it doesn't exist"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        statuses = ", ".join(f"'{s.value}'" for s in JobStatus)
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS ocr_jobs (
                id TEXT PRIMARY KEY,
                input_refs TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'created',
                result TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                CHECK (status IN ({statuses}))
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_jobs_status
            ON ocr_jobs(status)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_jobs_created_at
            ON ocr_jobs(created_at)
        """)

        conn.commit()
        conn.close()

    async def _run(self, fn, *args):
        """Run a blocking sqlite3 call in a worker thread"""
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.error("SQLite job store error", db_path=self.db_path, error=str(e))
            raise JobStoreError(f"SQLite job store error: {e}") from e

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> OcrJob:
        result = row["result"]
        if result is not None:
            result = json.loads(result)
        return OcrJob(
            job_id=row["id"],
            input_refs=json.loads(row["input_refs"]),
            status=JobStatus(row["status"]),
            result=result,
            error=row["error"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def create_job(self, input_refs: list[str]) -> OcrJob:
        if not input_refs:
            raise ValueError("A job needs at least one input reference")
        return await self._run(self._create_job, list(input_refs))

    def _create_job(self, input_refs: list[str]) -> OcrJob:
        job_id = str(uuid.uuid4())
        now = datetime.now(UTC).isoformat()

        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            INSERT INTO ocr_jobs (id, input_refs, status, created_at, updated_at)
            VALUES (?, ?, 'created', ?, ?)
        """, (job_id, json.dumps(input_refs), now, now))

        conn.commit()
        conn.close()

        logger.info("OCR job created", job_id=job_id, inputs=len(input_refs))
        return OcrJob(
            job_id=job_id,
            input_refs=input_refs,
            created_at=datetime.fromisoformat(now),
            updated_at=datetime.fromisoformat(now),
        )

    async def get_job_status(self, job_id: str) -> JobStatusReport:
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return JobStatusReport(status=job.status, result=job.result, error=job.error)

    async def get_job(self, job_id: str) -> Optional[OcrJob]:
        return await self._run(self._get_job, job_id)

    def _get_job(self, job_id: str) -> Optional[OcrJob]:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(f"""
            SELECT {_COLUMNS}
            FROM ocr_jobs
            WHERE id = ?
        """, (job_id,))

        row = cursor.fetchone()
        conn.close()

        if row is None:
            return None
        return self._row_to_job(row)

    async def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 10) -> list[OcrJob]:
        return await self._run(self._list_jobs, status, limit)

    def _list_jobs(self, status: Optional[JobStatus], limit: int) -> list[OcrJob]:
        conn = self._get_connection()
        cursor = conn.cursor()

        if status is None:
            cursor.execute(f"""
                SELECT {_COLUMNS}
                FROM ocr_jobs
                ORDER BY created_at DESC
                LIMIT ?
            """, (limit,))
        else:
            cursor.execute(f"""
                SELECT {_COLUMNS}
                FROM ocr_jobs
                WHERE status = ?
                ORDER BY created_at DESC
                LIMIT ?
            """, (JobStatus(status).value, limit))

        rows = cursor.fetchall()
        conn.close()

        return [self._row_to_job(row) for row in rows]

    async def record_status(self, job_id: str, status: JobStatus, result=None, error=None) -> bool:
        return await self._run(self._record_status, job_id, JobStatus(status), result, error)

    def _record_status(self, job_id: str, status: JobStatus, result, error) -> bool:
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            UPDATE ocr_jobs
            SET status = ?,
                result = COALESCE(?, result),
                error = COALESCE(?, error),
                updated_at = ?
            WHERE id = ?
        """, (
            status.value,
            json.dumps(result) if result is not None else None,
            error,
            datetime.now(UTC).isoformat(),
            job_id,
        ))

        rows_affected = cursor.rowcount
        conn.commit()
        conn.close()

        return rows_affected > 0
