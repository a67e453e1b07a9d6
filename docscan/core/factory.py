"""
Builds pipeline components from settings.

Components never reach for global clients themselves; everything they talk
to is constructed here (or by tests) and passed in.
"""

from typing import Optional
from loguru import logger
from .config import Settings, settings as default_settings
from ..services.capture import CaptureCapability, CaptureOrchestrator
from ..services.events.progress import ProgressPublisher
from ..services.extractor import InvoiceExtractor
from ..services.jobs import InMemoryJobStore, JobStoreBase, SQLiteJobStore, SupabaseJobStore
from ..services.permissions import PermissionGate, PermissionProvider, StaticPermissionProvider
from ..services.pipeline import PipelineCoordinator
from ..services.storage import InMemoryObjectStorage, ObjectStorageBase, SupabaseObjectStorage
from ..services.tracker import JobTracker
from ..services.uploader import BackoffPolicy, StorageUploader


def _require_supabase(cfg: Settings) -> tuple[str, str]:
    if not cfg.supabase_url or not cfg.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase backend")
    return cfg.supabase_url, cfg.supabase_key


def create_object_storage(cfg: Settings = default_settings) -> ObjectStorageBase:
    backend = cfg.storage_backend.lower()
    if backend == "supabase":
        url, key = _require_supabase(cfg)
        return SupabaseObjectStorage(url=url, api_key=key)
    if backend == "azure":
        if not cfg.azure_storage_connection_string:
            raise ValueError("AZURE_STORAGE_CONNECTION_STRING must be set for the azure backend")
        from ..services.storage.azure_blob import AzureBlobObjectStorage
        return AzureBlobObjectStorage.from_connection_string(cfg.azure_storage_connection_string)
    if backend == "memory":
        logger.warning("Using in-memory object storage; uploads are not durable")
        return InMemoryObjectStorage()
    raise ValueError(f"Unknown STORAGE_BACKEND: {cfg.storage_backend}")


def create_job_store(cfg: Settings = default_settings) -> JobStoreBase:
    backend = cfg.job_store_backend.lower()
    if backend == "supabase":
        url, key = _require_supabase(cfg)
        return SupabaseJobStore(url=url, api_key=key, table=cfg.supabase_jobs_table, bucket=cfg.storage_bucket)
    if backend == "sqlite":
        return SQLiteJobStore(cfg.jobs_db_path)
    if backend == "memory":
        logger.warning("Using in-memory job store; jobs cannot be resumed after restart")
        return InMemoryJobStore()
    raise ValueError(f"Unknown JOB_STORE_BACKEND: {cfg.job_store_backend}")


def create_progress_publisher(cfg: Settings = default_settings) -> ProgressPublisher:
    if not cfg.servicebus_connection_string:
        return ProgressPublisher(service_bus_sender=None, history_limit=cfg.progress_history_limit)

    from azure.servicebus import ServiceBusClient

    client = ServiceBusClient.from_connection_string(cfg.servicebus_connection_string)
    sender = client.get_queue_sender(queue_name=cfg.servicebus_queue_name)
    logger.info("Forwarding progress events to Service Bus", queue=cfg.servicebus_queue_name)
    return ProgressPublisher(service_bus_sender=sender, history_limit=cfg.progress_history_limit)


def create_coordinator(
    capability: CaptureCapability,
    permission_provider: Optional[PermissionProvider] = None,
    storage: Optional[ObjectStorageBase] = None,
    job_store: Optional[JobStoreBase] = None,
    publisher: Optional[ProgressPublisher] = None,
    cfg: Settings = default_settings,
) -> PipelineCoordinator:
    gate = PermissionGate(permission_provider or StaticPermissionProvider())
    uploader = StorageUploader(
        storage or create_object_storage(cfg),
        bucket=cfg.storage_bucket,
        concurrency=cfg.upload_concurrency,
        backoff=BackoffPolicy(
            max_retries=cfg.upload_max_retries,
            base=cfg.upload_backoff_base,
            factor=cfg.upload_backoff_factor,
            max_delay=cfg.upload_backoff_max,
        ),
        attempt_timeout=cfg.upload_attempt_timeout,
        delete_local_after_upload=cfg.delete_local_after_upload,
        cache_limit=cfg.upload_cache_limit,
    )
    tracker = JobTracker(
        job_store or create_job_store(cfg),
        initial_interval=cfg.poll_initial_interval,
        max_interval=cfg.poll_max_interval,
        timeout=cfg.job_timeout,
    )
    return PipelineCoordinator(
        gate=gate,
        orchestrator=CaptureOrchestrator(gate, capability),
        uploader=uploader,
        tracker=tracker,
        extractor=InvoiceExtractor(),
        publisher=publisher or create_progress_publisher(cfg),
        default_page_limit=cfg.default_page_limit,
    )
