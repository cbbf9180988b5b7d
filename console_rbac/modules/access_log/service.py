import logging
from typing import Optional

from fastapi import Request

from console_rbac.core.principal import Principal
from console_rbac.database.store import AccessLogRecord, AccessStore
from console_rbac.modules.access_log.schemas import AccessLogEntry, AccessLogPage

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class AccessLogService:
    """Audit trail of authenticated API calls"""

    def __init__(self, store: AccessStore):
        self.store = store

    def record(self, principal: Principal, request: Request, status_code: int) -> AccessLogRecord:
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        return self.store.record_access(
            user_email=principal.email,
            user_role=principal.platform_role,
            method=request.method,
            path=path,
            ip=client_ip(request),
            status=status_code,
        )

    def list_page(self, cursor: Optional[int] = None, limit: int = 20) -> AccessLogPage:
        """Newest first; cursor is the id of the last entry of the previous page"""
        logs = self.store.list_access_logs(before_id=cursor, limit=limit)
        return AccessLogPage(
            logs=[AccessLogEntry(**log.model_dump()) for log in logs],
            next_cursor=logs[-1].id if len(logs) == limit else None,
        )
