"""
Privilege-mutation guard.

Every role change runs these checks in order; the first failure is returned:
  1. required fields are present                                 -> bad_request
  2. the actor may not change their own role                     -> bad_request
  3. existence of the target (user, resource, ACL row)           -> not_found
  4. the new role must be assignable in the scope                -> bad_request
  5. a scope owner's role is never changed here                  -> bad_request
  6. the target must rank strictly below the actor               -> forbidden
     (platform SUPER_ADMIN skips this at platform scope)
  7. the new role must exist in the store                        -> bad_request

Profile updates and deletions of platform users follow the same rank rule.

An accepted change is returned as a PlannedChange: the write plus the role ids the decision
was based on, so the store can refuse the commit if any of them moved in the meantime.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from console_rbac.config.permissions_config import DEFAULT_PLATFORM_ROLE, RoleName, RoleScope
from console_rbac.core.authorization import AuthorizationGate, EffectiveRole
from console_rbac.core.catalog import CatalogRegistry, RoleCatalog
from console_rbac.core.outcomes import Outcome
from console_rbac.core.principal import Principal, ResourceRef
from console_rbac.database.store import (
    AccessStore, AclRecord, RoleExpectation, RoleWrite, RowKind, UserRecord,
)

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing userId or newRole."
SELF_MODIFICATION = "You cannot change your own role."
SELF_DELETION = "Cannot delete your own account."
ACCOUNT_GONE = "Your account no longer exists."


@dataclass(frozen=True)
class PlannedChange:
    target_user_id: str
    new_role: str
    write: RoleWrite
    expectations: Tuple[RoleExpectation, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PlannedRemoval:
    acl: AclRecord
    expectations: Tuple[RoleExpectation, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PlannedUserEdit:
    """Update or deletion of a platform user, valid while actor and target keep their roles"""
    target: UserRecord
    expectations: Tuple[RoleExpectation, ...] = field(default_factory=tuple)


class PrivilegeMutationGuard:
    def __init__(self, store: AccessStore, catalogs: CatalogRegistry, admin_peer_modification: bool = False):
        self.store = store
        self.catalogs = catalogs
        self.gate = AuthorizationGate(store, catalogs)
        self.admin_peer_modification = admin_peer_modification

    # Platform roles

    def check_platform_change(
        self,
        actor: Principal,
        target_user_id: Optional[str],
        new_role: Optional[str]
    ) -> Outcome[PlannedChange]:
        """Validate changing a user's platform role"""
        if not target_user_id or not new_role:
            return Outcome.bad_request(MISSING_FIELDS)

        if actor.id == target_user_id:
            return Outcome.bad_request(SELF_MODIFICATION)

        target = self.store.get_user(target_user_id)
        if target is None:
            return Outcome.not_found(f'User with ID "{target_user_id}" not found.')

        if new_role not in RoleCatalog.assignable_roles(RoleScope.PLATFORM):
            if new_role == RoleName.SUPER_ADMIN.value:
                return Outcome.bad_request("Cannot assign the SuperAdmin role.")
            return Outcome.bad_request(self._invalid_role(new_role, RoleScope.PLATFORM))

        # Platform scope has no owner role; SUPER_ADMIN is protected by rank instead.

        # Rank as currently persisted, so a demotion since the request was authenticated counts
        standing = self.gate.effective_role(actor, None)
        if standing is None:
            return Outcome.forbidden(ACCOUNT_GONE)
        target_role = target.role_name or DEFAULT_PLATFORM_ROLE

        if standing.name != RoleName.SUPER_ADMIN.value:
            ranks = self._ranks(standing.name, target_role, RoleScope.PLATFORM)
            if not ranks.ok:
                return ranks
            actor_level, target_level = ranks.value
            peer_allowed = self.admin_peer_modification and standing.name == RoleName.ADMIN.value
            if target_level < actor_level or (target_level == actor_level and not peer_allowed):
                return self._outranked(actor, target_role)

        role = self.store.get_role_by_name(new_role)
        if role is None:
            return Outcome.bad_request(f'Role "{new_role}" not found.')

        return Outcome.allow(PlannedChange(
            target_user_id=target.id,
            new_role=new_role,
            write=RoleWrite(
                row_kind=RowKind.USER,
                row_id=target.id,
                expected_role_id=target.role_id,
                new_role_id=role.id,
            ),
            expectations=(standing.source,),
        ))

    # Platform user profiles

    def check_user_update(self, actor: Principal, target_user_id: str) -> Outcome[PlannedUserEdit]:
        """Validate editing another user's profile. SUPER_ADMIN may edit anyone."""
        return self._check_user_edit(actor, target_user_id, "update", super_admin_bypass=True)

    def check_user_deletion(self, actor: Principal, target_user_id: str) -> Outcome[PlannedUserEdit]:
        if actor.id == target_user_id:
            return Outcome.bad_request(SELF_DELETION)
        return self._check_user_edit(actor, target_user_id, "delete", super_admin_bypass=False)

    def _check_user_edit(
        self,
        actor: Principal,
        target_user_id: str,
        verb: str,
        super_admin_bypass: bool
    ) -> Outcome[PlannedUserEdit]:
        target = self.store.get_user(target_user_id)
        if target is None:
            return Outcome.not_found("User not found.")

        standing = self.gate.effective_role(actor, None)
        if standing is None:
            return Outcome.forbidden(ACCOUNT_GONE)

        ranks = self._ranks(standing.name, target.role_name or DEFAULT_PLATFORM_ROLE, RoleScope.PLATFORM)
        if not ranks.ok:
            return ranks
        actor_level, target_level = ranks.value
        bypass = super_admin_bypass and standing.name == RoleName.SUPER_ADMIN.value
        if target_level <= actor_level and not bypass:
            logger.info(f"User {actor.id} tried to {verb} user {target.id} ({target.role_name})")
            return Outcome.forbidden(f"Cannot {verb} users with an equal or higher role.")

        return Outcome.allow(PlannedUserEdit(
            target=target,
            expectations=(
                standing.source,
                RoleExpectation(row_kind=RowKind.USER, row_id=target.id, expected_role_id=target.role_id),
            ),
        ))

    # Project / provider ACL roles

    def check_acl_change(
        self,
        actor: Principal,
        resource: ResourceRef,
        target_user_id: Optional[str],
        new_role: Optional[str]
    ) -> Outcome[PlannedChange]:
        """Validate changing a member's role on a project or provider"""
        if not target_user_id or not new_role:
            return Outcome.bad_request(MISSING_FIELDS)

        scope = resource.type.scope
        label = resource.type.label
        if self.store.get_resource(resource) is None:
            return Outcome.not_found(f'{label} "{resource.id}" not found.')

        # Before the membership lookup: admins act without an ACL row of their own
        if actor.id == target_user_id:
            return Outcome.bad_request(SELF_MODIFICATION)

        target_acl = self.store.get_acl(target_user_id, resource)
        if target_acl is None:
            return Outcome.not_found(f'User with ID "{target_user_id}" not found within this {resource.type.value}.')

        if new_role not in RoleCatalog.assignable_roles(scope):
            return Outcome.bad_request(self._invalid_role(new_role, scope))

        owner_role = RoleCatalog.owner_role(scope)
        if target_acl.role_name == owner_role:
            return Outcome.bad_request(f"Cannot modify the role of a '{owner_role}'.")

        standing = self._outranks_member(actor, resource, target_acl)
        if not standing.ok:
            return standing

        role = self.store.get_role_by_name(new_role)
        if role is None:
            return Outcome.bad_request(f'Role "{new_role}" not found.')

        return Outcome.allow(PlannedChange(
            target_user_id=target_user_id,
            new_role=new_role,
            write=RoleWrite(
                row_kind=RowKind.ACL,
                row_id=target_acl.id,
                expected_role_id=target_acl.role_id,
                new_role_id=role.id,
            ),
            expectations=(standing.value.source,),
        ))

    def check_acl_removal(
        self,
        actor: Principal,
        resource: ResourceRef,
        target_user_id: str
    ) -> Outcome[PlannedRemoval]:
        """Validate removing a member from a project or provider"""
        label = resource.type.label
        if self.store.get_resource(resource) is None:
            return Outcome.not_found(f'{label} "{resource.id}" not found.')

        target_acl = self.store.get_acl(target_user_id, resource)
        if target_acl is None:
            return Outcome.bad_request(f"User does not have access to this {resource.type.value}.")

        if target_acl.role_name == RoleCatalog.owner_role(resource.type.scope):
            return Outcome.bad_request(f"Cannot remove the owner of the {resource.type.value}.")

        standing = self._outranks_member(actor, resource, target_acl)
        if not standing.ok:
            return standing

        return Outcome.allow(PlannedRemoval(acl=target_acl, expectations=(standing.value.source,)))

    # Helpers

    def _outranks_member(
        self,
        actor: Principal,
        resource: ResourceRef,
        target_acl: AclRecord
    ) -> Outcome[EffectiveRole]:
        """Allow with the actor's effective role iff it ranks above the member"""
        standing = self.gate.effective_role(actor, resource)
        if standing is None:
            return Outcome.forbidden(f"You do not have access to this {resource.type.value}.")

        ranks = self._ranks(standing.name, target_acl.role_name, resource.type.scope)
        if not ranks.ok:
            return ranks
        actor_level, target_level = ranks.value
        if target_level <= actor_level:
            return self._outranked(actor, target_acl.role_name)
        return Outcome.allow(standing)

    def _ranks(self, actor_role: str, target_role: str, scope: RoleScope) -> Outcome[Tuple[int, int]]:
        catalog = self.catalogs.current()
        levels: List[int] = []
        for role in (actor_role, target_role):
            level = catalog.hierarchy_level(role, scope)
            if level is None:
                return Outcome.internal_fault(f"Role {role} has no {scope.value} hierarchy level")
            levels.append(level)
        return Outcome.allow((levels[0], levels[1]))

    @staticmethod
    def _outranked(actor: Principal, target_role: str) -> Outcome:
        logger.info(f"User {actor.id} tried to modify a member with role {target_role}")
        return Outcome.forbidden(f"Cannot modify users with an equal or higher role ({target_role}).")

    @staticmethod
    def _invalid_role(new_role: str, scope: RoleScope) -> str:
        allowed = ", ".join(RoleCatalog.assignable_roles(scope))
        return f"Invalid role: {new_role}. Must be one of: {allowed}"
