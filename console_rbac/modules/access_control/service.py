"""
Member management for projects and providers, plus the ACL side of their lifecycle.

Callers pass the AuthorizedRequest produced by the resource gate; role changes and removals
are re-validated by the mutation guard, never trusted from the gate alone.
"""
import logging
from typing import List, Optional, Sequence

from console_rbac.config.permissions_config import Permission
from console_rbac.core.catalog import CatalogRegistry, RoleCatalog
from console_rbac.core.guard import PrivilegeMutationGuard
from console_rbac.core.mutator import STALE_BATCH, BulkRoleMutator, RoleChange
from console_rbac.core.outcomes import Outcome
from console_rbac.core.principal import AuthorizedRequest, Principal, ResourceRef, ResourceType
from console_rbac.database.store import (
    AccessStore, DuplicateAclError, DuplicateResourceError, ResourceRecord, StaleWriteError,
)
from console_rbac.modules.access_control.schemas import MemberResponse
from console_rbac.modules.users.schemas import MessageResponse, RoleChangeRequest, RoleChangeResponse

logger = logging.getLogger(__name__)

# Members listed for a resource are the ones whose role can read it
READ_PERMISSIONS = {
    ResourceType.PROJECT: Permission.PROJECT_READ.value,
    ResourceType.PROVIDER: Permission.PROVIDER_READ.value,
}


class AccessControlService:
    def __init__(
        self,
        store: AccessStore,
        catalogs: CatalogRegistry,
        guard: PrivilegeMutationGuard,
        mutator: BulkRoleMutator
    ):
        self.store = store
        self.catalogs = catalogs
        self.guard = guard
        self.mutator = mutator

    def list_members(self, request: AuthorizedRequest) -> Outcome[List[MemberResponse]]:
        resource = request.resource
        if self.store.get_resource(resource) is None:
            return Outcome.not_found(f"{resource.type.label} not found")
        catalog = self.catalogs.current()
        read = READ_PERMISSIONS[resource.type]
        members = []
        for acl in self.store.list_acls(resource):
            if not catalog.has_permissions(acl.role_name, [read]):
                continue
            user = self.store.get_user(acl.user_id)
            if user is None:
                continue
            members.append(MemberResponse(id=user.id, email=user.email, name=user.name, role=acl.role_name))
        return Outcome.allow(members)

    def add_member(
        self,
        request: AuthorizedRequest,
        email: Optional[str],
        role_name: Optional[str]
    ) -> Outcome[MessageResponse]:
        """Grant an existing user one of the scope's assignable roles"""
        resource = request.resource
        kind = resource.type.value
        if not email or not role_name:
            return Outcome.bad_request("Email and role are required.")

        assignable = RoleCatalog.assignable_roles(resource.type.scope)
        if role_name not in assignable:
            return Outcome.bad_request(f"Invalid role: {role_name}. Must be one of: {', '.join(assignable)}")

        user = self.store.get_user_by_email(email)
        if user is None:
            return Outcome.not_found(f'User with email "{email}" not found.')
        if self.store.get_resource(resource) is None:
            return Outcome.not_found(f'{resource.type.label} "{resource.id}" not found.')
        if self.store.get_acl(user.id, resource) is not None:
            return Outcome.bad_request(f"User already has access to this {kind}.")

        role = self.store.get_role_by_name(role_name)
        if role is None:
            return Outcome.bad_request(f'Role "{role_name}" not found.')

        try:
            self.store.create_acl(user.id, resource, role.id)
        except DuplicateAclError:
            return Outcome.bad_request(f"User already has access to this {kind}.")
        except StaleWriteError as e:
            logger.warning(f"ACL for {email} on {kind} {resource.id} not created: {e}")
            return Outcome.conflict(STALE_BATCH)

        logger.info(f"User {request.principal.id} added {user.id} to {kind} {resource.id} as {role_name}")
        return Outcome.allow(MessageResponse(message=f"User added successfully to the {kind}."))

    def update_member_roles(
        self,
        request: AuthorizedRequest,
        entries: Sequence[RoleChangeRequest]
    ) -> Outcome[MessageResponse]:
        """Change several members' roles on the resource, all or none"""
        if not entries:
            return Outcome.bad_request("Invalid request body.")
        outcome = self.mutator.apply_role_changes(
            request.principal,
            [RoleChange(user_id=e.user_id, new_role=e.new_role) for e in entries],
            resource=request.resource,
        )
        if not outcome.ok:
            return outcome
        return Outcome.allow(MessageResponse(
            message=f"{request.resource.type.label} roles updated successfully.",
            changes=[RoleChangeResponse(user_id=c.target_user_id, role=c.new_role) for c in outcome.value],
        ))

    def remove_member(self, request: AuthorizedRequest, email: Optional[str]) -> Outcome[MessageResponse]:
        resource = request.resource
        kind = resource.type.value
        if not email:
            return Outcome.bad_request("Email is required.")
        user = self.store.get_user_by_email(email)
        if user is None:
            return Outcome.not_found(f'User with email "{email}" not found.')

        outcome = self._remove(request.principal, resource, user.id)
        if not outcome.ok:
            return outcome
        logger.info(f"User {request.principal.id} removed {user.id} from {kind} {resource.id}")
        return Outcome.allow(MessageResponse(message=f"User removed successfully from the {kind}."))

    def _remove(self, actor: Principal, resource: ResourceRef, user_id: str) -> Outcome:
        planned = self.guard.check_acl_removal(actor, resource, user_id)
        if not planned.ok:
            return planned
        removal = planned.value
        try:
            self.store.delete_acl(removal.acl.id, removal.acl.role_id, removal.expectations)
        except StaleWriteError as e:
            logger.warning(f"Removal of {user_id} from {resource.type.value} {resource.id} not committed: {e}")
            recheck = self.guard.check_acl_removal(actor, resource, user_id)
            if not recheck.ok:
                return recheck
            return Outcome.conflict(STALE_BATCH)
        return Outcome.allow()

    # Resource lifecycle

    def create_resource(
        self,
        principal: Principal,
        resource_type: ResourceType,
        name: str,
        description: Optional[str] = None
    ) -> Outcome[ResourceRecord]:
        """Create a project/provider with the creator as its owner, atomically"""
        owner_role_name = RoleCatalog.owner_role(resource_type.scope)
        owner_role = self.store.get_role_by_name(owner_role_name)
        if owner_role is None:
            return Outcome.internal_fault(f"Owner role {owner_role_name} is missing from the store")
        try:
            record = self.store.create_resource(resource_type, name, description, principal.id, owner_role.id)
        except DuplicateResourceError:
            return Outcome.bad_request(f"A {resource_type.value} with this name already exists.")
        except StaleWriteError as e:
            logger.warning(f"Creation of {resource_type.value} {name} not committed: {e}")
            return Outcome.conflict(STALE_BATCH)
        logger.info(f"User {principal.id} created {resource_type.value} {record.id} ({name})")
        return Outcome.allow(record)

    def delete_resource(self, request: AuthorizedRequest) -> Outcome[MessageResponse]:
        resource = request.resource
        if not self.store.delete_resource(resource):
            return Outcome.not_found(f"{resource.type.label} not found")
        logger.info(f"User {request.principal.id} deleted {resource.type.value} {resource.id}")
        return Outcome.allow(MessageResponse(message=f"{resource.type.label} deleted successfully."))
