from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any
from pydantic import BaseModel
from ..core.factory import create_job_store, create_object_storage, create_progress_publisher
from ..models.invoice import Invoice
from ..models.job import OcrJob
from ..services.events.progress import ProgressPublisher
from ..services.jobs import JobStoreBase
from ..services.storage import ObjectStorageBase


class LineItemResponse(BaseModel):
    description: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    amount: Decimal


class InvoiceResponse(BaseModel):
    vendor: str
    invoice_date: date
    line_items: list[LineItemResponse]
    total: Decimal
    currency: str | None = None
    source_job_id: str | None = None

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls.model_validate(invoice.model_dump())


class JobResponse(BaseModel):
    job_id: str
    status: str
    input_refs: list[str]
    created_at: datetime
    updated_at: datetime
    result: dict[str, Any] | str | None = None
    error: str | None = None

    @classmethod
    def from_job(cls, job: OcrJob) -> "JobResponse":
        return cls(
            job_id=job.job_id,
            status=job.status.value,
            input_refs=job.input_refs,
            created_at=job.created_at,
            updated_at=job.updated_at,
            result=job.result,
            error=job.error,
        )


# Backends are built once per process from settings; tests swap them
# through app.dependency_overrides.

@lru_cache
def get_job_store() -> JobStoreBase:
    return create_job_store()


@lru_cache
def get_object_storage() -> ObjectStorageBase:
    return create_object_storage()


@lru_cache
def get_progress_publisher() -> ProgressPublisher:
    return create_progress_publisher()
