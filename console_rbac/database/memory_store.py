"""In-process access store. Every method holds one lock, so each write is a single transaction."""
import logging
import itertools
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from console_rbac.config.permissions_config import DEFAULT_PLATFORM_ROLE, PERMISSION_MATRIX
from console_rbac.core.principal import ResourceRef, ResourceType
from console_rbac.database.store import (
    USER_COLUMNS, AccessLogRecord, AccessStore, AclRecord, DuplicateAclError, DuplicateResourceError,
    DuplicateRoleError, DuplicateUserError, PermissionRecord, ResourceRecord, RoleExpectation,
    RoleRecord, RoleWrite, RowKind, StaleWriteError, UserRecord, UserStatus,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryAccessStore(AccessStore):
    def __init__(self, seed: bool = True):
        self._lock = threading.RLock()
        self._users: Dict[str, dict] = {}
        self._roles: Dict[str, dict] = {}
        self._permissions: Dict[str, dict] = {}
        self._role_permissions: Dict[str, set] = {}  # role_id -> {permission_id}
        self._resources: Dict[ResourceType, Dict[str, dict]] = {t: {} for t in ResourceType}
        self._acls: Dict[str, dict] = {}
        self._access_logs: List[dict] = []
        self._access_log_ids = itertools.count(1)
        if seed:
            self.sync_catalog(PERMISSION_MATRIX)

    # Users

    def add_user(
        self,
        email: str,
        name: Optional[str] = None,
        role_name: Optional[str] = DEFAULT_PLATFORM_ROLE,
        status: UserStatus = UserStatus.VERIFIED
    ) -> UserRecord:
        """Register a user profile. Accounts themselves are created by the auth provider."""
        with self._lock:
            role = self.get_role_by_name(role_name) if role_name else None
            if role_name and role is None:
                raise ValueError(f"Role {role_name} not found")
            user_id = _new_id()
            self._users[user_id] = {
                "id": user_id,
                "email": email,
                "name": name,
                "status": status,
                "role_id": role.id if role else None,
            }
            return self._user_record(self._users[user_id])

    def _user_record(self, row: dict) -> UserRecord:
        role = self._roles.get(row["role_id"]) if row["role_id"] else None
        return UserRecord(**row, role_name=role["name"] if role else None)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            row = self._users.get(user_id)
            return self._user_record(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            for row in self._users.values():
                if row["email"] == email:
                    return self._user_record(row)
            return None

    def list_users(self, limit: int = 100, offset: int = 0) -> List[UserRecord]:
        with self._lock:
            rows = sorted(self._users.values(), key=lambda r: r["email"])
            return [self._user_record(r) for r in rows[offset:offset + limit]]

    def update_user(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        expectations: Sequence[RoleExpectation] = ()
    ) -> UserRecord:
        unknown = set(changes) - set(USER_COLUMNS)
        if unknown:
            raise ValueError(f"Not a user profile column: {sorted(unknown)}")
        with self._lock:
            self._check_expectations(expectations)
            row = self._users.get(user_id)
            if row is None:
                raise StaleWriteError("users", user_id)
            email = changes.get("email")
            if email is not None and any(r["email"] == email for r in self._users.values() if r is not row):
                raise DuplicateUserError(f"Email {email} is taken")
            role_id = changes.get("role_id")
            if role_id is not None and role_id not in self._roles:
                raise StaleWriteError("roles", role_id)
            row.update(changes)
            return self._user_record(row)

    def delete_user(self, user_id: str, expectations: Sequence[RoleExpectation] = ()) -> None:
        with self._lock:
            self._check_expectations(expectations)
            if self._users.pop(user_id, None) is None:
                raise StaleWriteError("users", user_id)
            for acl_id in [i for i, r in self._acls.items() if r["user_id"] == user_id]:
                del self._acls[acl_id]
            for resources in self._resources.values():
                for resource in resources.values():
                    if resource["owner_id"] == user_id:
                        resource["owner_id"] = None

    # Resources and ACLs

    def get_resource(self, ref: ResourceRef) -> Optional[ResourceRecord]:
        with self._lock:
            row = self._resources[ref.type].get(ref.id)
            return ResourceRecord(**row) if row else None

    def _acl_record(self, row: dict) -> AclRecord:
        return AclRecord(**row, role_name=self._roles[row["role_id"]]["name"])

    @staticmethod
    def _matches(row: dict, ref: ResourceRef) -> bool:
        if ref.type == ResourceType.PROJECT:
            return row["project_id"] == ref.id
        return row["provider_id"] == ref.id

    def get_acl(self, user_id: str, ref: ResourceRef) -> Optional[AclRecord]:
        with self._lock:
            for row in self._acls.values():
                if row["user_id"] == user_id and self._matches(row, ref):
                    return self._acl_record(row)
            return None

    def list_acls(self, ref: ResourceRef) -> List[AclRecord]:
        with self._lock:
            return [self._acl_record(r) for r in self._acls.values() if self._matches(r, ref)]

    # Roles and permissions

    def get_role(self, role_id: str) -> Optional[RoleRecord]:
        with self._lock:
            row = self._roles.get(role_id)
            return RoleRecord(**row) if row else None

    def get_role_by_name(self, name: str) -> Optional[RoleRecord]:
        with self._lock:
            for row in self._roles.values():
                if row["name"] == name:
                    return RoleRecord(**row)
            return None

    def list_roles(self) -> List[RoleRecord]:
        with self._lock:
            return [RoleRecord(**r) for r in sorted(self._roles.values(), key=lambda r: r["name"])]

    def list_permissions(self) -> List[PermissionRecord]:
        with self._lock:
            return [PermissionRecord(**p) for p in sorted(self._permissions.values(), key=lambda p: p["name"])]

    def get_role_permission_names(self, role_id: str) -> List[str]:
        with self._lock:
            return sorted(self._permissions[pid]["name"] for pid in self._role_permissions.get(role_id, ()))

    def get_role_permission_map(self) -> Dict[str, List[str]]:
        with self._lock:
            return {row["name"]: self.get_role_permission_names(role_id) for role_id, row in self._roles.items()}

    # Transactional writes

    def _role_row(self, row_kind: RowKind, row_id: str) -> dict:
        table = self._users if row_kind == RowKind.USER else self._acls
        row = table.get(row_id)
        if row is None:
            raise StaleWriteError(row_kind.value, row_id)
        return row

    def _check_expectations(self, checks: Sequence[RoleExpectation]) -> None:
        for check in checks:
            row = self._role_row(check.row_kind, check.row_id)
            if row["role_id"] != check.expected_role_id:
                raise StaleWriteError(check.row_kind.value, check.row_id)

    def apply_role_writes(
        self,
        writes: Sequence[RoleWrite],
        expectations: Sequence[RoleExpectation] = ()
    ) -> int:
        with self._lock:
            # Check everything before touching anything
            self._check_expectations(list(expectations) + list(writes))
            for write in writes:
                if write.new_role_id not in self._roles:
                    raise StaleWriteError("roles", write.new_role_id)
            for write in writes:
                self._role_row(write.row_kind, write.row_id)["role_id"] = write.new_role_id
            logger.debug(f"Applied {len(writes)} role writes")
            return len(writes)

    def create_acl(self, user_id: str, ref: ResourceRef, role_id: str) -> AclRecord:
        with self._lock:
            if self.get_acl(user_id, ref) is not None:
                raise DuplicateAclError(f"User {user_id} already has access to {ref.type.value} {ref.id}")
            if user_id not in self._users:
                raise StaleWriteError("users", user_id)
            if ref.id not in self._resources[ref.type]:
                raise StaleWriteError(f"{ref.type.value}s", ref.id)
            if role_id not in self._roles:
                raise StaleWriteError("roles", role_id)
            acl_id = _new_id()
            self._acls[acl_id] = {
                "id": acl_id,
                "user_id": user_id,
                "role_id": role_id,
                "project_id": ref.id if ref.type == ResourceType.PROJECT else None,
                "provider_id": ref.id if ref.type == ResourceType.PROVIDER else None,
            }
            return self._acl_record(self._acls[acl_id])

    def delete_acl(
        self,
        acl_id: str,
        expected_role_id: str,
        expectations: Sequence[RoleExpectation] = ()
    ) -> None:
        with self._lock:
            self._check_expectations(
                list(expectations) + [RoleExpectation(row_kind=RowKind.ACL, row_id=acl_id, expected_role_id=expected_role_id)]
            )
            del self._acls[acl_id]

    def create_resource(
        self,
        resource_type: ResourceType,
        name: str,
        description: Optional[str],
        owner_id: str,
        owner_role_id: str
    ) -> ResourceRecord:
        with self._lock:
            if any(r["name"] == name for r in self._resources[resource_type].values()):
                raise DuplicateResourceError(f"A {resource_type.value} named {name} already exists")
            if owner_id not in self._users:
                raise StaleWriteError("users", owner_id)
            if owner_role_id not in self._roles:
                raise StaleWriteError("roles", owner_role_id)
            resource_id = _new_id()
            self._resources[resource_type][resource_id] = {
                "id": resource_id,
                "type": resource_type,
                "name": name,
                "description": description,
                "owner_id": owner_id,
            }
            record = ResourceRecord(**self._resources[resource_type][resource_id])
            self.create_acl(owner_id, record.ref, owner_role_id)
            return record

    def delete_resource(self, ref: ResourceRef) -> bool:
        with self._lock:
            if self._resources[ref.type].pop(ref.id, None) is None:
                return False
            for acl_id in [i for i, r in self._acls.items() if self._matches(r, ref)]:
                del self._acls[acl_id]
            return True

    def create_role(self, name: str, description: Optional[str] = None) -> RoleRecord:
        with self._lock:
            if self.get_role_by_name(name) is not None:
                raise DuplicateRoleError(f"Role {name} already exists")
            role_id = _new_id()
            self._roles[role_id] = {"id": role_id, "name": name, "description": description}
            self._role_permissions[role_id] = set()
            return RoleRecord(**self._roles[role_id])

    def replace_role_permissions(self, role_id: str, permission_ids: Sequence[str]) -> List[str]:
        with self._lock:
            if role_id not in self._roles:
                raise StaleWriteError("roles", role_id)
            unknown = [pid for pid in permission_ids if pid not in self._permissions]
            if unknown:
                raise ValueError(f"Unknown permission ids: {unknown}")
            self._role_permissions[role_id] = set(permission_ids)
            return self.get_role_permission_names(role_id)

    def sync_catalog(self, matrix: dict) -> Dict[str, int]:
        with self._lock:
            by_name = {p["name"]: p for p in self._permissions.values()}
            for perm in matrix["permissions"]:
                existing = by_name.get(perm["name"])
                if existing:
                    existing.update(perm)
                else:
                    permission_id = _new_id()
                    self._permissions[permission_id] = {"id": permission_id, **perm}
                    by_name[perm["name"]] = self._permissions[permission_id]
            for role in matrix["roles"]:
                existing = self.get_role_by_name(role["name"])
                if existing:
                    self._roles[existing.id]["description"] = role["description"]
                    role_id = existing.id
                else:
                    role_id = self.create_role(role["name"], role["description"]).id
                self._role_permissions[role_id] = {by_name[name]["id"] for name in role["permissions"]}
            return {"permissions": len(matrix["permissions"]), "roles": len(matrix["roles"])}

    # Audit trail

    def record_access(
        self,
        user_email: Optional[str],
        user_role: Optional[str],
        method: str,
        path: str,
        ip: Optional[str],
        status: int
    ) -> AccessLogRecord:
        with self._lock:
            row = {
                "id": next(self._access_log_ids),
                "user_email": user_email,
                "user_role": user_role,
                "method": method,
                "path": path,
                "ip": ip,
                "status": status,
                "created_at": datetime.now(timezone.utc),
            }
            self._access_logs.append(row)
            return AccessLogRecord(**row)

    def list_access_logs(self, before_id: Optional[int] = None, limit: int = 20) -> List[AccessLogRecord]:
        with self._lock:
            rows = [r for r in reversed(self._access_logs) if before_id is None or r["id"] < before_id]
            return [AccessLogRecord(**r) for r in rows[:limit]]
