from fastapi import APIRouter, Depends
from console_rbac.core.catalog import CatalogRegistry
from console_rbac.core.dependencies import get_catalog_registry, get_current_principal
from console_rbac.core.principal import Principal
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore
from console_rbac.modules.auth.schemas import MeResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=MeResponse)
async def get_me(
    principal: Principal = Depends(get_current_principal),
    store: AccessStore = Depends(get_access_store),
    catalogs: CatalogRegistry = Depends(get_catalog_registry)
):
    """Current user, platform role and its permissions (for frontend UI)"""
    user = store.get_user(principal.id)
    return MeResponse(
        id=principal.id,
        email=principal.email,
        name=user.name if user else None,
        role=principal.platform_role,
        role_level=principal.platform_role_level,
        permissions=sorted(catalogs.current().permissions_for(principal.platform_role)),
    )
