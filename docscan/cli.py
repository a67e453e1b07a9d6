#!/usr/bin/env python3
"""
docscan command line.

Usage:
    docscan scan --folder ./scans-incoming --page-limit 5
    docscan jobs --status queued
    docscan status <job-id>
    docscan resume <job-id>
"""

import argparse
import asyncio
import json
import signal
import sys
from .core.config import settings
from .core.errors import PipelineError
from .core.factory import create_coordinator, create_job_store
from .core.logging import setup_logging
from .models.invoice import Invoice
from .models.job import JobStatus
from .services.capture import DirectoryCapture, FileListCapture
from .services.events.progress import ProgressEvent, StageState

_STATE_ICONS = {
    StageState.STARTED.value: "🔄",
    StageState.PROGRESS.value: "📊",
    StageState.SUCCEEDED.value: "✅",
    StageState.FAILED.value: "❌",
    StageState.CANCELLED.value: "⏹️ ",
}


def print_event(event: ProgressEvent) -> None:
    icon = _STATE_ICONS.get(event.state, "•")
    detail = f" ({event.detail})" if event.detail else ""
    print(f"{icon} {event.stage:<10} {event.state}{detail}")


def print_invoice(invoice: Invoice) -> None:
    print()
    print("📄 INVOICE")
    print(f"   Vendor:   {invoice.vendor}")
    print(f"   Date:     {invoice.invoice_date.isoformat()}")
    for item in invoice.line_items:
        print(f"   - {item.description or '(no description)'}: {item.amount}")
    print(f"   Total:    {invoice.currency or ''} {invoice.total}".rstrip())
    print(f"   Job:      {invoice.source_job_id}")


def print_pipeline_error(error: PipelineError) -> None:
    print()
    print(f"❌ Scan failed at stage '{error.stage}' ({error.category})")
    print(f"   {error.cause.message}")
    if error.category == "permission":
        print("   → Grant access in system settings and try again")
    elif error.category == "transient":
        print("   → Check the connection and retry")
    elif error.category == "permanent":
        print("   → Enter the invoice manually")


def _cancel_on_sigint(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on some platforms; Ctrl+C then aborts the run
        pass


async def _scan(args) -> int:
    capability = FileListCapture(args.files) if args.files else DirectoryCapture(args.folder)
    coordinator = create_coordinator(capability)
    coordinator.publisher.subscribe(print_event)

    cancel = asyncio.Event()
    _cancel_on_sigint(cancel)
    try:
        invoice = await coordinator.run_one_scan(page_limit=args.page_limit, cancel=cancel)
    except PipelineError as e:
        print_pipeline_error(e)
        return 1
    finally:
        await coordinator.uploader.storage.close()
        await coordinator.tracker.job_store.close()

    print_invoice(invoice)
    return 0


async def _resume(args) -> int:
    coordinator = create_coordinator(FileListCapture([]))
    coordinator.publisher.subscribe(print_event)

    cancel = asyncio.Event()
    _cancel_on_sigint(cancel)
    try:
        invoice = await coordinator.resume_job(args.job_id, cancel=cancel)
    except PipelineError as e:
        print_pipeline_error(e)
        return 1
    finally:
        await coordinator.uploader.storage.close()
        await coordinator.tracker.job_store.close()

    print_invoice(invoice)
    return 0


async def _status(args) -> int:
    store = create_job_store()
    try:
        job = await store.get_job(args.job_id)
    finally:
        await store.close()

    if job is None:
        print(f"❌ Job not found: {args.job_id}")
        return 1
    print(json.dumps(job.model_dump(mode="json"), indent=2))
    return 0


async def _jobs(args) -> int:
    store = create_job_store()
    try:
        jobs = await store.list_jobs(status=JobStatus(args.status) if args.status else None, limit=args.limit)
    finally:
        await store.close()

    if not jobs:
        print("No jobs found")
    for job in jobs:
        print(f"{job.created_at.isoformat()}  {job.job_id}  {job.status.value:<10}  {len(job.input_refs)} page(s)")
    return 0


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docscan",
        description="Capture document pages, run them through the OCR job pipeline and extract the invoice",
    )
    parser.add_argument("--log-level", default=None, help=f"Log level (default: {settings.log_level})")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan one document from a folder or a list of image files")
    source = scan.add_mutually_exclusive_group(required=True)
    source.add_argument("--folder", help="Folder whose image files (sorted by name) are the pages")
    source.add_argument("--files", nargs="+", help="Page image files, in page order")
    scan.add_argument(
        "--page-limit",
        type=_positive_int,
        default=settings.default_page_limit,
        help=f"Maximum pages to keep (default: {settings.default_page_limit})",
    )
    scan.set_defaults(handler=_scan)

    resume = sub.add_parser("resume", help="Resume tracking a job and extract its invoice")
    resume.add_argument("job_id")
    resume.set_defaults(handler=_resume)

    status = sub.add_parser("status", help="Show a job record")
    status.add_argument("job_id")
    status.set_defaults(handler=_status)

    jobs = sub.add_parser("jobs", help="List recent jobs")
    jobs.add_argument("--status", choices=[s.value for s in JobStatus], default=None)
    jobs.add_argument("--limit", type=_positive_int, default=10)
    jobs.set_defaults(handler=_jobs)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
