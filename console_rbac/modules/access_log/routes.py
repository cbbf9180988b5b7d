from fastapi import APIRouter, Depends, Query
from console_rbac.core.dependencies import require_platform_admin
from console_rbac.core.principal import Principal
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore
from console_rbac.modules.access_log.schemas import AccessLogPage
from console_rbac.modules.access_log.service import AccessLogService
from typing import Optional

router = APIRouter(prefix="/access-control/access-log", tags=["access-log"])


def get_access_log_service(store: AccessStore = Depends(get_access_store)) -> AccessLogService:
    return AccessLogService(store)


@router.get("", response_model=AccessLogPage)
async def list_access_log(
    cursor: Optional[int] = Query(None, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(require_platform_admin),
    service: AccessLogService = Depends(get_access_log_service)
):
    """Page through recorded API calls, newest first"""
    return service.list_page(cursor=cursor, limit=limit)
