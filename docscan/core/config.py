from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("docscan", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Object storage
    storage_backend: str = Field("memory", alias="STORAGE_BACKEND")  # memory | supabase | azure
    storage_bucket: str = Field("ocr-images", alias="STORAGE_BUCKET")
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_key: str | None = Field(default=None, alias="SUPABASE_KEY")
    azure_storage_connection_string: str | None = Field(default=None, alias="AZURE_STORAGE_CONNECTION_STRING")

    # Job store
    job_store_backend: str = Field("sqlite", alias="JOB_STORE_BACKEND")  # memory | sqlite | supabase
    jobs_db_path: str = Field("ocr_jobs.db", alias="JOBS_DB_PATH")
    supabase_jobs_table: str = Field("ocr_jobs", alias="SUPABASE_JOBS_TABLE")

    # Upload
    upload_concurrency: int = Field(3, alias="UPLOAD_CONCURRENCY")
    upload_max_retries: int = Field(3, alias="UPLOAD_MAX_RETRIES")
    upload_backoff_base: float = Field(0.5, alias="UPLOAD_BACKOFF_BASE")
    upload_backoff_factor: float = Field(2.0, alias="UPLOAD_BACKOFF_FACTOR")
    upload_backoff_max: float = Field(5.0, alias="UPLOAD_BACKOFF_MAX")
    upload_attempt_timeout: float = Field(15.0, alias="UPLOAD_ATTEMPT_TIMEOUT")
    upload_cache_limit: int = Field(1024, alias="UPLOAD_CACHE_LIMIT")
    delete_local_after_upload: bool = Field(False, alias="DELETE_LOCAL_AFTER_UPLOAD")

    # Job tracking
    poll_initial_interval: float = Field(1.0, alias="POLL_INITIAL_INTERVAL")
    poll_max_interval: float = Field(10.0, alias="POLL_MAX_INTERVAL")
    job_timeout: float = Field(120.0, alias="JOB_TIMEOUT")

    # Capture
    default_page_limit: int = Field(10, alias="DEFAULT_PAGE_LIMIT")

    # Progress events (optional Service Bus forwarding)
    servicebus_connection_string: str | None = Field(default=None, alias="SERVICEBUS_CONNECTION_STRING")
    servicebus_queue_name: str = Field("scan-progress", alias="SERVICEBUS_QUEUE_NAME")
    progress_history_limit: int = Field(1000, alias="PROGRESS_HISTORY_LIMIT")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "populate_by_name": True}

settings = Settings()
