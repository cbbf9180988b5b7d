"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from console_rbac.config import settings
from console_rbac.config.permissions_config import DEFAULT_PLATFORM_ROLE, Permission, RoleScope
from console_rbac.core.authorization import ACCESS_DENIED, AuthorizationGate, is_platform_admin
from console_rbac.core.catalog import CatalogRegistry
from console_rbac.core.guard import PrivilegeMutationGuard
from console_rbac.core.mutator import BulkRoleMutator
from console_rbac.core.outcomes import Outcome, raise_for_outcome
from console_rbac.core.principal import AuthorizedRequest, Principal, ResourceRef, ResourceType
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore, UserStatus
from console_rbac.database.supabase_client import get_supabase
from console_rbac.modules.auth.service import AuthService
from supabase import Client
from typing import Optional
import logging
import threading

logger = logging.getLogger(__name__)

security = HTTPBearer()

_catalog_lock = threading.Lock()
_catalog_registry: Optional[CatalogRegistry] = None


def get_catalog_registry(store: AccessStore = Depends(get_access_store)) -> CatalogRegistry:
    """Process-wide role catalog, reloaded from the store after settings.catalog_ttl_seconds"""
    global _catalog_registry
    with _catalog_lock:
        if _catalog_registry is None:
            _catalog_registry = CatalogRegistry(store, ttl_seconds=settings.catalog_ttl_seconds)
        return _catalog_registry


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_gate(
    store: AccessStore = Depends(get_access_store),
    catalogs: CatalogRegistry = Depends(get_catalog_registry)
) -> AuthorizationGate:
    return AuthorizationGate(store, catalogs)


def get_guard(
    store: AccessStore = Depends(get_access_store),
    catalogs: CatalogRegistry = Depends(get_catalog_registry)
) -> PrivilegeMutationGuard:
    return PrivilegeMutationGuard(store, catalogs, admin_peer_modification=settings.admin_peer_modification)


def get_mutator(
    store: AccessStore = Depends(get_access_store),
    guard: PrivilegeMutationGuard = Depends(get_guard)
) -> BulkRoleMutator:
    return BulkRoleMutator(store, guard)


def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service),
    store: AccessStore = Depends(get_access_store),
    catalogs: CatalogRegistry = Depends(get_catalog_registry)
) -> Principal:
    """Resolve the bearer token to a Principal carrying the persisted platform role"""
    user_data = auth_service.get_current_user(credentials.credentials)
    user = store.get_user(user_data["id"])
    if user is None:
        logger.info(f"Authenticated user {user_data['id']} has no profile")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User profile not found"
        )
    if user.status != UserStatus.VERIFIED:
        logger.info(f"User {user.id} is {user.status.value}, access refused")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not verified"
        )
    role = user.role_name or DEFAULT_PLATFORM_ROLE
    level = catalogs.current().hierarchy_level(role, RoleScope.PLATFORM)
    if level is None:
        raise_for_outcome(Outcome.internal_fault(f"Platform role {role} of user {user.id} has no hierarchy level"))
    principal = Principal(id=user.id, email=user.email, platform_role=role, platform_role_level=level)
    # Read back by the access log middleware once the response is known
    request.state.principal = principal
    request.state.access_store = store
    return principal


def require_permission(*permissions: Permission):
    """Factory function to create a platform-level permission check dependency"""
    def check_permission(
        principal: Principal = Depends(get_current_principal),
        gate: AuthorizationGate = Depends(get_gate)
    ) -> AuthorizedRequest:
        return raise_for_outcome(gate.authorize(principal, permissions))
    return check_permission


def require_platform_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Only platform SUPER_ADMIN or ADMIN"""
    if not is_platform_admin(principal):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED)
    return principal


def require_resource_permission(resource_type: ResourceType, param: str, *permissions: Permission):
    """Factory for a dependency checking permissions on the project/provider named by path parameter param"""
    def check_resource_permission(
        request: Request,
        principal: Principal = Depends(get_current_principal),
        gate: AuthorizationGate = Depends(get_gate)
    ) -> AuthorizedRequest:
        resource = ResourceRef(type=resource_type, id=request.path_params[param])
        return raise_for_outcome(gate.authorize(principal, permissions, resource))
    return check_resource_permission
