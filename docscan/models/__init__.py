from .capture import CaptureSession, CapturedPage, SessionOutcome, StorageObject, object_key
from .invoice import Invoice, LineItem
from .job import JobStatus, JobStatusReport, OcrJob, TERMINAL_STATUSES
