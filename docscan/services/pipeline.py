"""
Top-level sequencer for one scan: Permission → Capture → Upload → Track → Extract.

The first failing stage short-circuits the run. Its error is wrapped in a
PipelineError naming the stage, so "camera denied", "upload failed",
"OCR timed out" and "unparseable result" stay distinguishable for callers
and in logs. No stage is retried at this level.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar
from loguru import logger
from ..core.config import settings
from ..core.errors import Cancelled, DocscanError, PipelineError
from ..models.invoice import Invoice
from ..models.job import OcrJob
from .capture import CaptureOrchestrator
from .events.progress import ProgressEvent, ProgressPublisher, Stage, StageState
from .extractor import InvoiceExtractor
from .permissions import PermissionGate
from .tracker import JobTracker
from .uploader import StorageUploader

T = TypeVar("T")


class PipelineCoordinator:
    def __init__(
        self,
        gate: PermissionGate,
        orchestrator: CaptureOrchestrator,
        uploader: StorageUploader,
        tracker: JobTracker,
        extractor: Optional[InvoiceExtractor] = None,
        publisher: Optional[ProgressPublisher] = None,
        default_page_limit: Optional[int] = None,
    ):
        self.gate = gate
        self.orchestrator = orchestrator
        self.uploader = uploader
        self.tracker = tracker
        self.extractor = extractor or InvoiceExtractor()
        self.publisher = publisher or ProgressPublisher()
        self.default_page_limit = settings.default_page_limit if default_page_limit is None else default_page_limit

    async def run_one_scan(
        self,
        page_limit: Optional[int] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Invoice:
        """
        Scan one document and return the extracted invoice.

        Args:
            page_limit: Maximum pages to keep from the capture
            cancel: Set by the caller to abandon the run; tracking stops at
                its next suspension point without further network calls

        Raises:
            PipelineError: ``stage`` names the failing stage, ``cause`` the
                original error
        """
        if page_limit is None:
            page_limit = self.default_page_limit
        run = _RunContext(self.publisher)

        async def permission():
            status = await self.gate.ensure_camera_access()
            status.raise_for_status()
            return status

        await self._stage(run, Stage.PERMISSION, cancel, permission)

        session = await self._stage(run, Stage.CAPTURE, cancel, lambda: self.orchestrator.capture(page_limit))
        run.session_id = session.session_id
        if session.pages_discarded:
            run.emit(Stage.CAPTURE, StageState.PROGRESS, f"discarded {session.pages_discarded} pages over the limit")

        objects = await self._stage(run, Stage.UPLOAD, cancel, lambda: self.uploader.upload(session))

        async def track():
            job = await self.tracker.submit(objects)
            run.job_id = job.job_id
            run.emit(Stage.TRACK, StageState.PROGRESS, job.status.value)
            return await self.tracker.track(job, cancel=cancel, on_transition=run.on_transition)

        job = await self._stage(run, Stage.TRACK, cancel, track)
        return await self._extract(run, job, cancel)

    async def resume_job(self, job_id: str, cancel: Optional[asyncio.Event] = None) -> Invoice:
        """Track and extract a job submitted by an earlier run"""
        run = _RunContext(self.publisher, job_id=job_id)
        job = await self._stage(
            run,
            Stage.TRACK,
            cancel,
            lambda: self.tracker.resume(job_id, cancel=cancel, on_transition=run.on_transition),
        )
        return await self._extract(run, job, cancel)

    async def _extract(self, run: "_RunContext", job: OcrJob, cancel: Optional[asyncio.Event]) -> Invoice:
        async def extract():
            return self.extractor.extract(job.result, source_job_id=job.job_id)

        invoice = await self._stage(run, Stage.EXTRACT, cancel, extract)
        logger.info(
            "Scan finished",
            session_id=run.session_id,
            job_id=job.job_id,
            vendor=invoice.vendor,
            total=str(invoice.total),
        )
        return invoice

    async def _stage(
        self,
        run: "_RunContext",
        stage: Stage,
        cancel: Optional[asyncio.Event],
        action: Callable[[], Awaitable[T]],
    ) -> T:
        if cancel is not None and cancel.is_set():
            run.emit(stage, StageState.CANCELLED)
            raise PipelineError(stage.value, Cancelled())

        run.emit(stage, StageState.STARTED)
        try:
            result = await action()
        except DocscanError as e:
            state = StageState.CANCELLED if e.category == "cancelled" else StageState.FAILED
            run.emit(stage, state, e.message)
            logger.error(
                "Pipeline stopped",
                stage=stage.value,
                category=e.category,
                error=e.message,
                session_id=run.session_id,
                job_id=run.job_id,
            )
            raise PipelineError(stage.value, e) from e
        except asyncio.CancelledError:
            run.emit(stage, StageState.CANCELLED)
            raise

        run.emit(stage, StageState.SUCCEEDED)
        return result


class _RunContext:
    """Identifiers of the current run, stamped onto every progress event"""

    def __init__(self, publisher: ProgressPublisher, session_id: Optional[str] = None, job_id: Optional[str] = None):
        self.publisher = publisher
        self.session_id = session_id
        self.job_id = job_id

    def emit(self, stage: Stage, state: StageState, detail: Optional[str] = None) -> None:
        self.publisher.publish(ProgressEvent(
            stage=stage,
            state=state,
            session_id=self.session_id,
            job_id=self.job_id,
            detail=detail,
        ))

    def on_transition(self, job: OcrJob) -> None:
        self.job_id = job.job_id
        self.emit(Stage.TRACK, StageState.PROGRESS, job.status.value)
