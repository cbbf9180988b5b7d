from fastapi import APIRouter, Depends, Query
from console_rbac.config.permissions_config import Permission
from console_rbac.core.dependencies import get_guard, get_mutator, require_permission
from console_rbac.core.guard import PrivilegeMutationGuard
from console_rbac.core.mutator import BulkRoleMutator
from console_rbac.core.outcomes import raise_for_outcome
from console_rbac.core.principal import AuthorizedRequest
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore
from console_rbac.modules.users.schemas import (
    ConfirmUserRequest, MessageResponse, RoleChangeRequest, SetRolesRequest, UserResponse, UserUpdate,
    UserUpdateResponse,
)
from console_rbac.modules.users.service import UserAdminService
from typing import List

router = APIRouter(prefix="/access-control/users", tags=["users"])

require_user_management = require_permission(Permission.ADMIN_USER_MANAGEMENT)


def get_user_service(
    store: AccessStore = Depends(get_access_store),
    mutator: BulkRoleMutator = Depends(get_mutator),
    guard: PrivilegeMutationGuard = Depends(get_guard)
) -> UserAdminService:
    return UserAdminService(store, mutator, guard)


@router.get("", response_model=List[UserResponse])
async def list_users(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    request: AuthorizedRequest = Depends(require_user_management),
    service: UserAdminService = Depends(get_user_service)
):
    """List users with their verification status and platform role"""
    return service.list_users(limit=limit, offset=offset)


@router.post("/confirm", response_model=UserResponse)
async def confirm_user(
    body: ConfirmUserRequest,
    request: AuthorizedRequest = Depends(require_user_management),
    service: UserAdminService = Depends(get_user_service)
):
    """Verify a pending user so their token is accepted"""
    return raise_for_outcome(service.confirm_user(request, body.user_id))


@router.post("/set-role", response_model=MessageResponse)
async def set_role(
    body: RoleChangeRequest,
    request: AuthorizedRequest = Depends(require_user_management),
    service: UserAdminService = Depends(get_user_service)
):
    """Change one user's platform role"""
    return raise_for_outcome(service.set_roles(request, [body], message="Role updated successfully."))


@router.post("/set-roles", response_model=MessageResponse)
async def set_roles(
    body: SetRolesRequest,
    request: AuthorizedRequest = Depends(require_user_management),
    service: UserAdminService = Depends(get_user_service)
):
    """Change several users' platform roles in one transaction"""
    return raise_for_outcome(service.set_roles(request, body.users))


@router.put("/{user_id}", response_model=UserUpdateResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    request: AuthorizedRequest = Depends(require_user_management),
    service: UserAdminService = Depends(get_user_service)
):
    """Update a user's name or email"""
    return raise_for_outcome(service.update_user(request, user_id, name=body.name, email=body.email))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    request: AuthorizedRequest = Depends(require_user_management),
    service: UserAdminService = Depends(get_user_service)
):
    """Delete a user profile together with its access control entries"""
    return raise_for_outcome(service.delete_user(request, user_id))
