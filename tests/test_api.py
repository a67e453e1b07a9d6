"""
Tests for the HTTP surface: health, job listing and lookup, resume, and the
upload-driven scan endpoint. Backends are swapped for in-memory ones through
FastAPI dependency overrides.
"""

import asyncio
import pytest
from fastapi.testclient import TestClient
from docscan.api.deps import get_job_store, get_object_storage, get_progress_publisher
from docscan.api.main import app
from docscan.models.job import JobStatus, JobStatusReport
from docscan.services.events.progress import ProgressPublisher
from docscan.services.jobs.memory import InMemoryJobStore
from docscan.services.storage.memory import InMemoryObjectStorage


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


@pytest.fixture
def publisher():
    return ProgressPublisher()


@pytest.fixture
def client(job_store, storage, publisher):
    app.dependency_overrides[get_job_store] = lambda: job_store
    app.dependency_overrides[get_object_storage] = lambda: storage
    app.dependency_overrides[get_progress_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


def _jpeg(name: str, body: bytes = b"\xff\xd8fake-jpeg") -> tuple:
    return ("files", (name, body, "image/jpeg"))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_jobs(client, job_store):
    async def seed():
        first = await job_store.create_job(["a"])
        await job_store.create_job(["b"])
        job_store.set_status(first.job_id, JobStatus.QUEUED)

    asyncio.run(seed())

    everything = client.get("/jobs").json()
    queued = client.get("/jobs", params={"status": "queued"}).json()

    assert everything["count"] == 2
    assert queued["count"] == 1
    assert queued["jobs"][0]["status"] == "queued"


def test_get_job(client, job_store):
    job = asyncio.run(job_store.create_job(["s/page-000.jpg"]))

    response = client.get(f"/jobs/{job.job_id}")

    assert response.status_code == 200
    assert response.json()["input_refs"] == ["s/page-000.jpg"]
    assert response.json()["status"] == "created"


def test_get_unknown_job(client):
    assert client.get("/jobs/missing").status_code == 404


def test_resume_completed_job(client, job_store, invoice_payload):
    job = asyncio.run(job_store.create_job(["s/page-000.jpg"]))
    job_store.set_status(job.job_id, JobStatus.COMPLETED, result=invoice_payload)

    response = client.post(f"/jobs/{job.job_id}/resume")

    assert response.status_code == 200
    body = response.json()
    assert body["vendor"] == "Acme"
    assert body["source_job_id"] == job.job_id
    assert len(body["line_items"]) == 1


def test_resume_unknown_job(client):
    assert client.post("/jobs/missing/resume").status_code == 404


def test_scan_uploaded_pages(client, job_store, storage, publisher, invoice_payload):
    job_store.script_new_jobs(JobStatusReport(status=JobStatus.COMPLETED, result=invoice_payload))

    response = client.post("/scans", files=[_jpeg("front.jpg"), _jpeg("back.jpg")])

    assert response.status_code == 200
    assert response.json()["vendor"] == "Acme"
    assert response.json()["total"] in ("10.0", "10.00", 10.0)
    assert len(storage.keys("ocr-images")) == 2
    assert publisher.history[-1].stage == "extract"


def test_scan_extraction_error_is_422(client, job_store, invoice_payload):
    invoice_payload["total"] = 11.00
    job_store.script_new_jobs(JobStatusReport(status=JobStatus.COMPLETED, result=invoice_payload))

    response = client.post("/scans", files=[_jpeg("page.jpg")])

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["stage"] == "extract"
    assert detail["cause"]["field"] == "total"


def test_scan_failed_job_is_502(client, job_store):
    job_store.script_new_jobs(JobStatusReport(status=JobStatus.FAILED, error="no text found"))

    response = client.post("/scans", files=[_jpeg("page.jpg")])

    assert response.status_code == 502
    assert response.json()["detail"]["stage"] == "track"
    assert response.json()["detail"]["category"] == "permanent"


def test_scan_rejects_empty_file(client, storage):
    response = client.post("/scans", files=[_jpeg("page.jpg", b"")])

    assert response.status_code == 422
    assert storage.keys("ocr-images") == []
