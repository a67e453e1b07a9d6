"""
Error taxonomy for the scan pipeline.

Every terminal failure of a pipeline run is one of these exceptions. Each
carries a ``category`` so the presentation layer can decide which affordance
to offer without inspecting exception types:

- ``permission``: actionable via system settings
- ``transient``: actionable via retry
- ``permanent``: server/extraction failure, fall back to manual entry
- ``cancelled``: the user backed out, nothing to report
"""

from typing import Optional


class DocscanError(Exception):
    """Base class for all pipeline errors"""

    category = "permanent"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "category": self.category,
            "message": self.message,
        }


# Permission

class PermissionDenied(DocscanError):
    category = "permission"

    def __init__(self, message: str = "Camera access denied"):
        super().__init__(message)


class PermissionPermanentlyDenied(PermissionDenied):
    """Denied and the platform will no longer prompt; direct the user to settings"""

    def __init__(self, message: str = "Camera access permanently denied"):
        super().__init__(message)


# Capture

class CaptureCancelled(DocscanError):
    category = "cancelled"

    def __init__(self, message: str = "Capture cancelled by user"):
        super().__init__(message)


class CaptureFailed(DocscanError):
    pass


class CaptureInProgress(CaptureFailed):
    def __init__(self, message: str = "A capture session is already active"):
        super().__init__(message)


# Storage transport

class StorageError(DocscanError):
    pass


class StorageTransientError(StorageError):
    """Network-level or 5xx failure; safe to retry"""

    category = "transient"


class StorageAuthError(StorageError):
    """Authentication/authorization failure; never retried"""

    category = "permission"


class UploadFailed(DocscanError):
    """
    One or more pages could not be uploaded.

    ``uploaded`` holds the StorageObjects that were durably stored, so a
    caller may retry only ``failed_pages`` instead of recapturing.
    """

    category = "transient"

    def __init__(
        self,
        message: str,
        uploaded: Optional[list] = None,
        failed_pages: Optional[list[int]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.uploaded = uploaded or []
        self.failed_pages = failed_pages or []
        self.cause = cause
        if isinstance(cause, StorageAuthError):
            self.category = StorageAuthError.category

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["uploaded_keys"] = [obj.key for obj in self.uploaded]
        data["failed_pages"] = self.failed_pages
        return data


# Job store / tracking

class JobStoreError(DocscanError):
    category = "transient"


class JobNotFound(JobStoreError):
    category = "permanent"

    def __init__(self, job_id: str):
        super().__init__(f"OCR job not found: {job_id}")
        self.job_id = job_id


class JobFailed(DocscanError):
    def __init__(self, reason: Optional[str], job_id: Optional[str] = None):
        super().__init__(f"OCR job failed: {reason or 'no reason reported'}")
        self.reason = reason
        self.job_id = job_id


class JobTimedOut(DocscanError):
    category = "transient"

    def __init__(self, job_id: str, timeout: float):
        super().__init__(f"OCR job {job_id} did not finish within {timeout:g}s")
        self.job_id = job_id
        self.timeout = timeout


class Cancelled(DocscanError):
    category = "cancelled"

    def __init__(self, message: str = "Cancelled by caller"):
        super().__init__(message)


# Extraction

class ExtractionInvalid(DocscanError):
    """The job result could not be turned into a valid Invoice; ``field`` names the violation"""

    def __init__(self, field: str, detail: str = ""):
        message = f"Invalid extraction result: {field}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.field = field
        self.detail = detail

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


# Coordinator

class PipelineError(DocscanError):
    """A stage failure wrapped with the name of the stage that produced it"""

    def __init__(self, stage: str, cause: DocscanError):
        super().__init__(f"{stage} stage failed: {cause.message}")
        self.stage = stage
        self.cause = cause
        self.category = cause.category

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "category": self.category,
            "cause": self.cause.to_dict(),
        }
