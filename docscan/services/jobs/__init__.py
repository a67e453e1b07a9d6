from .job_store_base import JobStoreBase
from .memory import InMemoryJobStore
from .sqlite_store import SQLiteJobStore
from .supabase_jobs import SupabaseJobStore
