from fastapi import APIRouter, Depends
from console_rbac.config.permissions_config import Permission
from console_rbac.core.catalog import CatalogRegistry
from console_rbac.core.dependencies import get_catalog_registry, require_permission
from console_rbac.core.outcomes import raise_for_outcome
from console_rbac.core.principal import AuthorizedRequest
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore
from console_rbac.modules.roles.schemas import (
    PermissionResponse, RoleCreate, RoleResponse, RolePermissionsUpdate, RoleWithPermissionsResponse,
)
from console_rbac.modules.roles.service import RoleCatalogService
from typing import List

router = APIRouter(prefix="/access-control", tags=["roles"])

require_role_management = require_permission(Permission.ROLE_MANAGEMENT)


def get_role_service(
    store: AccessStore = Depends(get_access_store),
    catalogs: CatalogRegistry = Depends(get_catalog_registry)
) -> RoleCatalogService:
    return RoleCatalogService(store, catalogs)


@router.get("/roles", response_model=List[RoleWithPermissionsResponse])
async def list_roles(
    request: AuthorizedRequest = Depends(require_role_management),
    service: RoleCatalogService = Depends(get_role_service)
):
    """List roles with their permission names"""
    return service.list_roles()


@router.post("/roles", response_model=RoleResponse, status_code=201)
async def create_role(
    role_data: RoleCreate,
    request: AuthorizedRequest = Depends(require_role_management),
    service: RoleCatalogService = Depends(get_role_service)
):
    """Create a new role"""
    return raise_for_outcome(service.create_role(request, role_data.name, role_data.description))


@router.get("/roles/{role_id}", response_model=RoleWithPermissionsResponse)
async def get_role(
    role_id: str,
    request: AuthorizedRequest = Depends(require_role_management),
    service: RoleCatalogService = Depends(get_role_service)
):
    return raise_for_outcome(service.get_role_with_permissions(role_id))


@router.put("/roles/{role_id}/permissions", response_model=RoleWithPermissionsResponse)
async def replace_role_permissions(
    role_id: str,
    body: RolePermissionsUpdate,
    request: AuthorizedRequest = Depends(require_role_management),
    service: RoleCatalogService = Depends(get_role_service)
):
    """Replace all permissions of a role"""
    return raise_for_outcome(service.replace_role_permissions(request, role_id, body.permissions))


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    request: AuthorizedRequest = Depends(require_role_management),
    service: RoleCatalogService = Depends(get_role_service)
):
    return service.list_permissions()
