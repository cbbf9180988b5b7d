"""
Authorization gate: decides whether a principal may run an operation on a resource.

Resolution order for a resource check:
  1. platform SUPER_ADMIN / ADMIN hold the resource's owner role on every resource
     (the resource must exist, otherwise not_found)
  2. everybody else needs an ACL row on the resource, otherwise forbidden
  3. allow iff the bound role's permission set covers every required permission

Principals without standing on a resource get forbidden whether or not it exists.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from console_rbac.config.permissions_config import DEFAULT_PLATFORM_ROLE, PLATFORM_ADMIN_ROLES, as_name
from console_rbac.core.catalog import CatalogRegistry, RoleCatalog
from console_rbac.core.outcomes import Outcome
from console_rbac.core.principal import AuthorizedRequest, Principal, ResourceRef
from console_rbac.database.store import AccessStore, RoleExpectation, RowKind

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Forbidden: Access denied"


def is_platform_admin(principal: Principal) -> bool:
    return principal.platform_role in PLATFORM_ADMIN_ROLES


@dataclass(frozen=True)
class EffectiveRole:
    name: str
    source: RoleExpectation  # row the role was read from, still expected to hold it at commit


class AuthorizationGate:
    def __init__(self, store: AccessStore, catalogs: CatalogRegistry):
        self.store = store
        self.catalogs = catalogs

    def effective_role(self, principal: Principal, resource: Optional[ResourceRef]) -> Optional[EffectiveRole]:
        """Role the principal holds on resource (platform role when resource is None), as currently stored"""
        user = self.store.get_user(principal.id)
        if user is None:
            return None
        platform_role = user.role_name or DEFAULT_PLATFORM_ROLE
        user_row = RoleExpectation(row_kind=RowKind.USER, row_id=user.id, expected_role_id=user.role_id)
        if resource is None:
            return EffectiveRole(name=platform_role, source=user_row)
        if platform_role in PLATFORM_ADMIN_ROLES:
            return EffectiveRole(name=RoleCatalog.owner_role(resource.type.scope), source=user_row)
        acl = self.store.get_acl(user.id, resource)
        if acl is None:
            return None
        return EffectiveRole(
            name=acl.role_name,
            source=RoleExpectation(row_kind=RowKind.ACL, row_id=acl.id, expected_role_id=acl.role_id),
        )

    def authorize(
        self,
        principal: Principal,
        required: Iterable[str],
        resource: Optional[ResourceRef] = None
    ) -> Outcome[AuthorizedRequest]:
        """Check that principal holds every required permission, platform-wide or on resource"""
        required = frozenset(as_name(p) for p in required)
        if not required:
            return Outcome.bad_request("Permissions not specified")

        catalog = self.catalogs.current()

        if resource is None:
            role = principal.platform_role
            if not catalog.has_role(role):
                return Outcome.internal_fault(f"Platform role {role} of user {principal.id} is not in the role catalog")
        elif is_platform_admin(principal):
            if self.store.get_resource(resource) is None:
                return Outcome.not_found(f"{resource.type.label} not found")
            role = RoleCatalog.owner_role(resource.type.scope)
        else:
            acl = self.store.get_acl(principal.id, resource)
            if acl is None:
                logger.debug(f"User {principal.id} has no ACL on {resource.type.value} {resource.id}")
                return Outcome.forbidden(ACCESS_DENIED)
            role = acl.role_name

        granted = catalog.permissions_for(role)
        if not required <= granted:
            logger.info(
                f"Denied user {principal.id} ({role}) missing {sorted(required - granted)}"
                + (f" on {resource.type.value} {resource.id}" if resource else "")
            )
            return Outcome.forbidden(ACCESS_DENIED)

        return Outcome.allow(AuthorizedRequest(
            principal=principal,
            resource=resource,
            effective_role=role,
            permissions=granted,
        ))
