from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from ..deps import InvoiceResponse, JobResponse, get_job_store, get_object_storage, get_progress_publisher
from ...core.factory import create_coordinator
from ...models.job import JobStatus
from ...services.capture import FileListCapture
from ...services.events.progress import ProgressPublisher
from ...services.jobs import JobStoreBase
from ...services.storage import ObjectStorageBase

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("")
async def list_jobs(
    status: JobStatus | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    store: JobStoreBase = Depends(get_job_store),
):
    """List recent OCR jobs, newest first (optionally only one status, e.g. queued)"""
    jobs = await store.list_jobs(status=status, limit=limit)
    return {
        "count": len(jobs),
        "jobs": [JobResponse.from_job(j) for j in jobs],
    }


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, store: JobStoreBase = Depends(get_job_store)):
    job = await store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="OCR job not found")
    return JobResponse.from_job(job)


@router.post("/{job_id}/resume", response_model=InvoiceResponse)
async def resume_job(
    job_id: str,
    store: JobStoreBase = Depends(get_job_store),
    storage: ObjectStorageBase = Depends(get_object_storage),
    publisher: ProgressPublisher = Depends(get_progress_publisher),
):
    """
    Resume tracking a job created by an earlier scan and extract its invoice.

    Useful after a client lost its connection or a run timed out locally
    while the worker kept processing.
    """
    if await store.get_job(job_id) is None:
        raise HTTPException(status_code=404, detail="OCR job not found")

    logger.info("Resume requested", job_id=job_id)
    coordinator = create_coordinator(FileListCapture([]), storage=storage, job_store=store, publisher=publisher)
    invoice = await coordinator.resume_job(job_id)
    return InvoiceResponse.from_invoice(invoice)
