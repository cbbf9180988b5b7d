import logging
import re
from typing import Callable, List, Optional, Sequence

from console_rbac.config.permissions_config import DEFAULT_PLATFORM_ROLE
from console_rbac.core.guard import PlannedUserEdit, PrivilegeMutationGuard
from console_rbac.core.mutator import STALE_BATCH, BulkRoleMutator, RoleChange
from console_rbac.core.outcomes import Outcome
from console_rbac.core.principal import AuthorizedRequest, Principal
from console_rbac.database.store import (
    AccessStore, DuplicateUserError, RoleExpectation, RowKind, StaleWriteError, UserRecord, UserStatus,
)
from console_rbac.modules.users.schemas import (
    MessageResponse, RoleChangeRequest, RoleChangeResponse, UserResponse, UserUpdateResponse,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
EMAIL_IN_USE = "Email is already in use by another user."


def _user_response(user: UserRecord) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, name=user.name, status=user.status.value, role=user.role_name)


class UserAdminService:
    """Platform user administration: listing, verification, profile edits and platform role changes"""

    def __init__(self, store: AccessStore, mutator: BulkRoleMutator, guard: PrivilegeMutationGuard):
        self.store = store
        self.mutator = mutator
        self.guard = guard

    def list_users(self, limit: int = 100, offset: int = 0) -> List[UserResponse]:
        return [_user_response(u) for u in self.store.list_users(limit=limit, offset=offset)]

    def set_roles(
        self,
        request: AuthorizedRequest,
        entries: Sequence[RoleChangeRequest],
        message: str = "Roles updated successfully."
    ) -> Outcome[MessageResponse]:
        """Change the platform role of every listed user, or of none"""
        if not entries:
            return Outcome.bad_request("Invalid request body.")
        outcome = self.mutator.apply_role_changes(
            request.principal,
            [RoleChange(user_id=e.user_id, new_role=e.new_role) for e in entries],
        )
        if not outcome.ok:
            return outcome
        return Outcome.allow(MessageResponse(
            message=message,
            changes=[RoleChangeResponse(user_id=c.target_user_id, role=c.new_role) for c in outcome.value],
        ))

    def confirm_user(self, request: AuthorizedRequest, user_id: Optional[str]) -> Outcome[UserResponse]:
        """Mark a pending user verified; users without a platform role get the default one"""
        if not user_id:
            return Outcome.bad_request("Missing userId")
        user = self.store.get_user(user_id)
        if user is None:
            return Outcome.not_found("User not found.")

        changes = {"status": UserStatus.VERIFIED.value}
        expectations = []
        if user.role_id is None:
            role = self.store.get_role_by_name(DEFAULT_PLATFORM_ROLE)
            if role is None:
                return Outcome.internal_fault(f"Default role {DEFAULT_PLATFORM_ROLE} is missing from the store")
            changes["role_id"] = role.id
            expectations.append(RoleExpectation(row_kind=RowKind.USER, row_id=user.id, expected_role_id=None))

        try:
            confirmed = self.store.update_user(user.id, changes, expectations)
        except StaleWriteError as e:
            logger.warning(f"Confirmation of user {user.id} not committed: {e}")
            return Outcome.conflict(STALE_BATCH)
        logger.info(f"User {request.principal.id} verified user {user.id}")
        return Outcome.allow(_user_response(confirmed))

    def update_user(
        self,
        request: AuthorizedRequest,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None
    ) -> Outcome[UserUpdateResponse]:
        errors = []
        if name is not None and len(name) < 3:
            errors.append("Name must be at least 3 characters.")
        if email is not None and not EMAIL_PATTERN.match(email):
            errors.append("Invalid email format.")
        if errors:
            return Outcome.bad_request(" ".join(errors))

        changes = {}
        if name is not None:
            changes["name"] = name
        if email is not None:
            changes["email"] = email

        def write(planned: PlannedUserEdit) -> Outcome[UserUpdateResponse]:
            if email is not None and email != planned.target.email:
                if self.store.get_user_by_email(email) is not None:
                    return Outcome.bad_request(EMAIL_IN_USE)
            try:
                updated = self.store.update_user(user_id, changes, planned.expectations)
            except DuplicateUserError:
                return Outcome.bad_request(EMAIL_IN_USE)
            logger.info(f"User {request.principal.id} updated user {user_id} ({', '.join(changes) or 'no changes'})")
            return Outcome.allow(UserUpdateResponse(message="User updated successfully.", user=_user_response(updated)))

        return self._edit(request.principal, user_id, self.guard.check_user_update, write)

    def delete_user(self, request: AuthorizedRequest, user_id: str) -> Outcome[MessageResponse]:
        def write(planned: PlannedUserEdit) -> Outcome[MessageResponse]:
            self.store.delete_user(user_id, planned.expectations)
            logger.info(f"User {request.principal.id} deleted user {user_id} ({planned.target.email})")
            return Outcome.allow(MessageResponse(message="User deleted successfully."))

        return self._edit(request.principal, user_id, self.guard.check_user_deletion, write)

    def _edit(
        self,
        actor: Principal,
        user_id: str,
        check: Callable[[Principal, str], Outcome[PlannedUserEdit]],
        write: Callable[[PlannedUserEdit], Outcome]
    ) -> Outcome:
        """Run write for a change the guard accepts. A stale commit is re-checked, never retried."""
        planned = check(actor, user_id)
        if not planned.ok:
            return planned
        try:
            return write(planned.value)
        except StaleWriteError as e:
            logger.warning(f"Change to user {user_id} not committed: {e}")
            recheck = check(actor, user_id)
            if not recheck.ok:
                return recheck
            return Outcome.conflict(STALE_BATCH)
