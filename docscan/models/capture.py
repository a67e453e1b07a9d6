import uuid
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from pydantic import BaseModel, Field, PrivateAttr


class SessionOutcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class CapturedPage(BaseModel):
    path: Path
    size_bytes: int
    index: int

    model_config = {"frozen": True}


class CaptureSession(BaseModel):
    """
    One user-initiated scan attempt.

    Pages are appended by the capture orchestrator in arrival order. Once the
    session is sealed (handed to the uploader) it no longer accepts pages.
    """
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    pages: list[CapturedPage] = Field(default_factory=list)
    outcome: SessionOutcome = SessionOutcome.PENDING
    pages_discarded: int = 0

    _sealed: bool = PrivateAttr(default=False)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def add_page(self, path: Path) -> CapturedPage:
        if self._sealed:
            raise ValueError(f"Session {self.session_id} is sealed")

        path = Path(path)
        size = path.stat().st_size
        if size <= 0:
            raise ValueError(f"Captured page is empty: {path}")
        if any(p.path == path for p in self.pages):
            raise ValueError(f"Page already captured in this session: {path}")

        page = CapturedPage(path=path, size_bytes=size, index=len(self.pages))
        self.pages.append(page)
        return page

    def seal(self) -> "CaptureSession":
        self._sealed = True
        return self


class StorageObject(BaseModel):
    bucket: str
    key: str
    url: str
    page_index: int
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}


def object_key(session_id: str, page_index: int, suffix: str = "") -> str:
    """Deterministic object key for a page; retries for the same page reuse it"""
    return f"{session_id}/page-{page_index:03d}{suffix.lower()}"
