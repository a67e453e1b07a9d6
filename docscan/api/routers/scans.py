import tempfile
from pathlib import Path
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from loguru import logger
from ..deps import InvoiceResponse, get_job_store, get_object_storage, get_progress_publisher
from ...core.factory import create_coordinator
from ...services.capture import FileListCapture
from ...services.events.progress import ProgressPublisher
from ...services.jobs import JobStoreBase
from ...services.storage import ObjectStorageBase

router = APIRouter(prefix="/scans", tags=["scans"])


@router.post("", response_model=InvoiceResponse)
async def scan_uploaded_pages(
    files: list[UploadFile] = File(...),
    page_limit: int | None = Query(default=None, ge=1),
    store: JobStoreBase = Depends(get_job_store),
    storage: ObjectStorageBase = Depends(get_object_storage),
    publisher: ProgressPublisher = Depends(get_progress_publisher),
):
    """
    Run the full pipeline on uploaded page images (gallery import).

    The uploaded files play the role of the capture: they are written to a
    temporary folder in upload order, then uploaded to object storage,
    submitted as an OCR job, tracked and extracted.

    Pipeline failures are returned with the failing stage and a category
    (permission / transient / permanent / cancelled) in the error body.
    """
    with tempfile.TemporaryDirectory(prefix="docscan-") as tmp:
        paths = []
        for i, upload in enumerate(files):
            content = await upload.read()
            if not content:
                raise HTTPException(status_code=422, detail=f"Uploaded file {i} is empty")
            suffix = Path(upload.filename or "").suffix or ".jpg"
            path = Path(tmp) / f"upload-{i:03d}{suffix}"
            path.write_bytes(content)
            paths.append(path)

        logger.info("Scan requested via upload", files=len(paths), page_limit=page_limit)
        coordinator = create_coordinator(
            FileListCapture(paths),
            storage=storage,
            job_store=store,
            publisher=publisher,
        )
        invoice = await coordinator.run_one_scan(page_limit=page_limit)

    return InvoiceResponse.from_invoice(invoice)
