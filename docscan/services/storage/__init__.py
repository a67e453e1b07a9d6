from .object_storage_base import ObjectStorageBase
from .memory import InMemoryObjectStorage
from .supabase_storage import SupabaseObjectStorage
