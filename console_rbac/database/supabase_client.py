import logging

from supabase import create_client, Client
from console_rbac.config import settings

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Lazily created Supabase clients: anon key for token checks, service_role key for the access store"""
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def _create(cls, key: str, label: str) -> Client:
        if not settings.supabase_url or not key:
            raise RuntimeError(f"Supabase {label} client requested but SUPABASE_URL or its key is not set")
        logger.info(f"Creating Supabase {label} client for {settings.supabase_url}")
        return create_client(settings.supabase_url, key)

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = cls._create(settings.supabase_key, "anon")
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Bypasses RLS; the rbac_* functions must run with it. Falls back to the anon client."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = cls._create(settings.supabase_service_role_key, "service")
        return cls._service_client or cls.get_client()

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()
