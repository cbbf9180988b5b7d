"""
Bulk role mutation: validate every entry, then commit all writes in one transaction.

Validation reads happen before the commit, so each write carries the role ids it was
validated against and the store re-checks them inside the transaction. If anything moved,
nothing is written and the batch is validated again to report why.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from console_rbac.core.guard import PlannedChange, PrivilegeMutationGuard
from console_rbac.core.outcomes import Outcome
from console_rbac.core.principal import Principal, ResourceRef
from console_rbac.database.store import AccessStore, RoleExpectation, RowKind, StaleWriteError

logger = logging.getLogger(__name__)

STALE_BATCH = "Access control entries changed while the request was processed. Please retry."


@dataclass(frozen=True)
class RoleChange:
    user_id: Optional[str]
    new_role: Optional[str]


class BulkRoleMutator:
    def __init__(self, store: AccessStore, guard: PrivilegeMutationGuard):
        self.store = store
        self.guard = guard

    def plan(
        self,
        actor: Principal,
        changes: Sequence[RoleChange],
        resource: Optional[ResourceRef] = None
    ) -> Outcome[List[PlannedChange]]:
        """Validate entries in request order against current state; the first failure aborts"""
        planned: List[PlannedChange] = []
        seen = set()
        for change in changes:
            if change.user_id and change.user_id in seen:
                return Outcome.bad_request(f'Duplicate entry for user "{change.user_id}".')
            if resource is None:
                outcome = self.guard.check_platform_change(actor, change.user_id, change.new_role)
            else:
                outcome = self.guard.check_acl_change(actor, resource, change.user_id, change.new_role)
            if not outcome.ok:
                return outcome
            seen.add(change.user_id)
            planned.append(outcome.value)
        return Outcome.allow(planned)

    def apply_role_changes(
        self,
        actor: Principal,
        changes: Sequence[RoleChange],
        resource: Optional[ResourceRef] = None
    ) -> Outcome[List[PlannedChange]]:
        """Apply a batch of role changes for platform roles (resource=None) or one resource's ACLs"""
        outcome = self.plan(actor, changes, resource)
        if not outcome.ok:
            return outcome
        planned = outcome.value

        expectations: Dict[Tuple[RowKind, str], RoleExpectation] = {}
        for change in planned:
            for expectation in change.expectations:
                expectations[(expectation.row_kind, expectation.row_id)] = expectation

        try:
            self.store.apply_role_writes([c.write for c in planned], list(expectations.values()))
        except StaleWriteError as e:
            logger.warning(f"Role changes by user {actor.id} not committed: {e}")
            recheck = self.plan(actor, changes, resource)
            if not recheck.ok:
                return recheck
            return Outcome.conflict(STALE_BATCH)

        target = f"{resource.type.value} {resource.id}" if resource else "platform"
        logger.info(f"User {actor.id} changed {len(planned)} role(s) on {target}")
        return Outcome.allow(planned)
