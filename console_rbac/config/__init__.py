from console_rbac.config.settings import settings

__all__ = ["settings"]
