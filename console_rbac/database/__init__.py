import logging
import threading
from typing import Optional

from console_rbac.config import settings
from console_rbac.database.store import AccessStore

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_store: Optional[AccessStore] = None


def get_access_store() -> AccessStore:
    """Process-wide access store for the configured backend"""
    global _store
    with _lock:
        if _store is None:
            if settings.storage_backend == "memory":
                from console_rbac.database.memory_store import InMemoryAccessStore
                _store = InMemoryAccessStore()
            elif settings.storage_backend == "supabase":
                from console_rbac.database.supabase_client import SupabaseClient
                from console_rbac.database.supabase_store import SupabaseAccessStore
                _store = SupabaseAccessStore(SupabaseClient.get_service_client())
            else:
                raise ValueError(f"Unknown storage_backend: {settings.storage_backend}")
            logger.info(f"Access store backend: {settings.storage_backend}")
        return _store
