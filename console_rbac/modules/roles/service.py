import logging
from typing import List, Optional, Sequence

from console_rbac.core.catalog import CatalogRegistry
from console_rbac.core.outcomes import Outcome
from console_rbac.core.principal import AuthorizedRequest
from console_rbac.database.store import (
    AccessStore, DuplicateRoleError, PermissionRecord, RoleRecord, StaleWriteError,
)
from console_rbac.modules.roles.schemas import RoleWithPermissionsResponse

logger = logging.getLogger(__name__)


class RoleCatalogService:
    """Edits roles and their permission sets. Callers must hold ROLE_MANAGEMENT."""

    def __init__(self, store: AccessStore, catalogs: CatalogRegistry):
        self.store = store
        self.catalogs = catalogs

    def list_roles(self) -> List[RoleWithPermissionsResponse]:
        permission_map = self.store.get_role_permission_map()
        return [
            RoleWithPermissionsResponse(
                id=role.id,
                name=role.name,
                description=role.description,
                permissions=sorted(permission_map.get(role.name, [])),
            )
            for role in self.store.list_roles()
        ]

    def get_role_with_permissions(self, role_id: str) -> Outcome[RoleWithPermissionsResponse]:
        role = self.store.get_role(role_id)
        if role is None:
            return Outcome.not_found("Role not found.")
        return Outcome.allow(RoleWithPermissionsResponse(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=self.store.get_role_permission_names(role.id),
        ))

    def list_permissions(self) -> List[PermissionRecord]:
        return self.store.list_permissions()

    def create_role(self, request: AuthorizedRequest, name: str, description: Optional[str] = None) -> Outcome[RoleRecord]:
        """Create an empty role; it grants nothing until permissions are assigned"""
        name = name.strip()
        if not name:
            return Outcome.bad_request("Role name is required.")
        try:
            role = self.store.create_role(name, description)
        except DuplicateRoleError:
            return Outcome.bad_request("Role already exists.")
        self.catalogs.reload()
        logger.info(f"User {request.principal.id} created role {role.name}")
        return Outcome.allow(role)

    def replace_role_permissions(
        self,
        request: AuthorizedRequest,
        role_id: str,
        permission_names: Sequence[str]
    ) -> Outcome[RoleWithPermissionsResponse]:
        """Replace the role's whole permission set in one transaction, then publish a new catalog"""
        role = self.store.get_role(role_id)
        if role is None:
            return Outcome.not_found("Role not found.")

        known = {p.name: p.id for p in self.store.list_permissions()}
        requested = list(dict.fromkeys(permission_names))
        if any(name not in known for name in requested):
            return Outcome.bad_request("One or more permissions are invalid.")

        try:
            names = self.store.replace_role_permissions(role.id, [known[name] for name in requested])
        except StaleWriteError:
            return Outcome.not_found("Role not found.")
        except ValueError:
            # A permission vanished between the lookup and the write
            return Outcome.bad_request("One or more permissions are invalid.")

        self.catalogs.reload()
        logger.info(f"User {request.principal.id} set permissions of role {role.name}: {names}")
        return Outcome.allow(RoleWithPermissionsResponse(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=names,
        ))
