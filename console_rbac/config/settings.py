from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for the transactional rpc() writes

    # Access store
    storage_backend: str = "supabase"  # supabase | memory
    catalog_ttl_seconds: int = 60  # Reload role->permission snapshot after this many seconds

    # Policy: let a platform ADMIN change the role of another ADMIN (equal rank)
    admin_peer_modification: bool = False

    # App
    app_name: str = "console-rbac"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    access_log_enabled: bool = True  # Record authenticated API calls in access_logs

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
