"""
Tests for the command line entry point.
"""

import asyncio
import pytest
from docscan import cli
from docscan.core.factory import create_coordinator
from docscan.models.job import JobStatus, JobStatusReport
from docscan.services.jobs.memory import InMemoryJobStore
from docscan.services.storage.memory import InMemoryObjectStorage


@pytest.fixture
def job_store(monkeypatch):
    store = InMemoryJobStore()
    monkeypatch.setattr(cli, "create_job_store", lambda: store)
    return store


@pytest.fixture
def coordinators(monkeypatch, job_store):
    """Route CLI coordinators to in-memory backends"""
    built = []

    def _create(capability):
        coordinator = create_coordinator(capability, storage=InMemoryObjectStorage(), job_store=job_store)
        built.append(coordinator)
        return coordinator

    monkeypatch.setattr(cli, "create_coordinator", _create)
    return built


def test_parser_requires_a_source():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["scan"])


def test_parser_scan_arguments():
    args = cli.build_parser().parse_args(["scan", "--files", "a.jpg", "b.jpg", "--page-limit", "2"])
    assert args.files == ["a.jpg", "b.jpg"]
    assert args.page_limit == 2
    assert args.handler is cli._scan


@pytest.mark.parametrize("argv", [
    ["scan", "--folder", "pages", "--page-limit", "0"],
    ["scan", "--folder", "pages", "--page-limit", "-1"],
    ["scan", "--folder", "pages", "--page-limit", "two"],
    ["jobs", "--limit", "0"],
])
def test_parser_rejects_counts_below_one(argv):
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(argv)


def test_scan_folder_prints_invoice(tmp_path, capsys, job_store, coordinators, invoice_payload):
    (tmp_path / "page-1.jpg").write_bytes(b"page one")
    job_store.script_new_jobs(JobStatusReport(status=JobStatus.COMPLETED, result=invoice_payload))

    exit_code = cli.main(["scan", "--folder", str(tmp_path)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Vendor:   Acme" in out
    assert "extract" in out
    assert len(coordinators) == 1


def test_scan_failure_reports_stage(tmp_path, capsys, job_store, coordinators, invoice_payload):
    (tmp_path / "page-1.jpg").write_bytes(b"page one")
    invoice_payload["total"] = 11.00
    job_store.script_new_jobs(JobStatusReport(status=JobStatus.COMPLETED, result=invoice_payload))

    exit_code = cli.main(["scan", "--folder", str(tmp_path)])

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "stage 'extract'" in out
    assert "Enter the invoice manually" in out


def test_empty_folder_is_cancelled(tmp_path, capsys, coordinators):
    exit_code = cli.main(["scan", "--folder", str(tmp_path)])

    assert exit_code == 1
    assert "stage 'capture' (cancelled)" in capsys.readouterr().out


def test_status_and_jobs(capsys, job_store):
    job = asyncio.run(job_store.create_job(["s/page-000.jpg"]))

    assert cli.main(["status", job.job_id]) == 0
    assert job.job_id in capsys.readouterr().out

    assert cli.main(["jobs", "--status", "created"]) == 0
    assert job.job_id in capsys.readouterr().out

    assert cli.main(["status", "missing"]) == 1


def test_resume_prints_invoice(capsys, job_store, coordinators, invoice_payload):
    job = asyncio.run(job_store.create_job(["s/page-000.jpg"]))
    job_store.set_status(job.job_id, JobStatus.COMPLETED, result=invoice_payload)

    assert cli.main(["resume", job.job_id]) == 0
    assert "Vendor:   Acme" in capsys.readouterr().out
