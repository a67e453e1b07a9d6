"""
Capture orchestration.

A capture capability is anything that, given a page limit, hands back an
ordered list of local image paths (empty when the user backed out). The
orchestrator turns that into a CaptureSession.
"""

import asyncio
from pathlib import Path
from typing import Protocol, Sequence
from loguru import logger
from ..core.errors import CaptureCancelled, CaptureFailed, CaptureInProgress
from ..models.capture import CaptureSession, SessionOutcome
from .permissions import PermissionGate

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".heic", ".tif", ".tiff", ".webp", ".pdf"}


class CaptureCapability(Protocol):
    async def scan(self, max_pages: int) -> list[Path]: ...


class DirectoryCapture:
    """Treats the image files in a folder (sorted by name) as the scanned pages"""

    def __init__(self, folder: str | Path, suffixes: set[str] = IMAGE_SUFFIXES):
        self.folder = Path(folder)
        self.suffixes = {s.lower() for s in suffixes}

    async def scan(self, max_pages: int) -> list[Path]:
        if not self.folder.is_dir():
            raise FileNotFoundError(f"Capture folder does not exist: {self.folder}")
        return sorted(
            p for p in self.folder.iterdir()
            if p.is_file() and p.suffix.lower() in self.suffixes
        )


class FileListCapture:
    """Explicit list of files, e.g. gallery picks or HTTP uploads"""

    def __init__(self, paths: Sequence[str | Path]):
        self.paths = [Path(p) for p in paths]

    async def scan(self, max_pages: int) -> list[Path]:
        return list(self.paths)


class CaptureOrchestrator:
    def __init__(self, gate: PermissionGate, capability: CaptureCapability):
        self.gate = gate
        self.capability = capability
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self._lock.locked()

    async def capture(self, page_limit: int) -> CaptureSession:
        """
        Drive one capture session.

        Raises:
            PermissionDenied / PermissionPermanentlyDenied: camera not granted
            CaptureCancelled: the capability returned no pages
            CaptureFailed: the capability errored or returned unusable files
            CaptureInProgress: another capture is already running
        """
        if page_limit < 1:
            raise CaptureFailed(f"page_limit must be at least 1, got {page_limit}")
        if self._lock.locked():
            raise CaptureInProgress()

        async with self._lock:
            status = await self.gate.ensure_camera_access()
            status.raise_for_status()

            session = CaptureSession()
            logger.info("Capture started", session_id=session.session_id, page_limit=page_limit)

            try:
                paths = await self.capability.scan(page_limit)
            except Exception as e:
                session.outcome = SessionOutcome.FAILURE
                logger.error("Capture capability failed", session_id=session.session_id, error=str(e))
                raise CaptureFailed(f"Capture failed: {e}") from e

            if not paths:
                session.outcome = SessionOutcome.FAILURE
                logger.info("Capture returned no pages", session_id=session.session_id)
                raise CaptureCancelled()

            if len(paths) > page_limit:
                session.pages_discarded = len(paths) - page_limit
                logger.warning(
                    "Capture returned more pages than allowed, discarding extras",
                    session_id=session.session_id,
                    returned=len(paths),
                    page_limit=page_limit,
                )
                paths = paths[:page_limit]

            for path in paths:
                try:
                    session.add_page(Path(path))
                except (OSError, ValueError) as e:
                    session.outcome = SessionOutcome.FAILURE
                    logger.error("Unusable captured page", session_id=session.session_id, error=str(e))
                    raise CaptureFailed(f"Unusable captured page {path}: {e}") from e

            session.outcome = SessionOutcome.SUCCESS
            logger.info("Capture finished", session_id=session.session_id, pages=len(session.pages))
            return session
