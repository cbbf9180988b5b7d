from fastapi import APIRouter, Depends
from console_rbac.config.permissions_config import Permission
from console_rbac.core.catalog import CatalogRegistry
from console_rbac.core.dependencies import (
    get_catalog_registry, get_guard, get_mutator, require_resource_permission,
)
from console_rbac.core.guard import PrivilegeMutationGuard
from console_rbac.core.mutator import BulkRoleMutator
from console_rbac.core.outcomes import raise_for_outcome
from console_rbac.core.principal import AuthorizedRequest, ResourceType
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore
from console_rbac.modules.access_control.schemas import (
    MemberAdd, MemberRemove, MemberResponse, MembersUpdate,
)
from console_rbac.modules.access_control.service import AccessControlService
from console_rbac.modules.users.schemas import MessageResponse
from typing import List


def get_access_control_service(
    store: AccessStore = Depends(get_access_store),
    catalogs: CatalogRegistry = Depends(get_catalog_registry),
    guard: PrivilegeMutationGuard = Depends(get_guard),
    mutator: BulkRoleMutator = Depends(get_mutator)
) -> AccessControlService:
    return AccessControlService(store, catalogs, guard, mutator)


def add_access_control_routes(
    router: APIRouter,
    resource_type: ResourceType,
    param: str,
    list_permission: Permission,
    manage_permission: Permission
):
    """Register GET/POST/PUT/DELETE /{param}/access-control member routes on router"""
    path = f"/{{{param}}}/access-control"
    can_list = require_resource_permission(resource_type, param, list_permission)
    can_manage = require_resource_permission(resource_type, param, manage_permission)

    @router.get(path, response_model=List[MemberResponse], name=f"list_{resource_type.value}_members")
    async def list_members(
        request: AuthorizedRequest = Depends(can_list),
        service: AccessControlService = Depends(get_access_control_service)
    ):
        """Members whose role can read the resource"""
        return raise_for_outcome(service.list_members(request))

    @router.post(path, response_model=MessageResponse, status_code=201, name=f"add_{resource_type.value}_member")
    async def add_member(
        body: MemberAdd,
        request: AuthorizedRequest = Depends(can_manage),
        service: AccessControlService = Depends(get_access_control_service)
    ):
        return raise_for_outcome(service.add_member(request, body.email, body.role))

    @router.put(path, response_model=MessageResponse, name=f"update_{resource_type.value}_members")
    async def update_members(
        body: MembersUpdate,
        request: AuthorizedRequest = Depends(can_manage),
        service: AccessControlService = Depends(get_access_control_service)
    ):
        """Change several members' roles in one transaction"""
        return raise_for_outcome(service.update_member_roles(request, body.members))

    @router.delete(path, response_model=MessageResponse, name=f"remove_{resource_type.value}_member")
    async def remove_member(
        body: MemberRemove,
        request: AuthorizedRequest = Depends(can_manage),
        service: AccessControlService = Depends(get_access_control_service)
    ):
        return raise_for_outcome(service.remove_member(request, body.email))
