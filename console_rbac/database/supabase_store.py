"""
Supabase (PostgREST) access store.

Reads use the table query builder. Multi-row writes go through the rbac_* Postgres functions
in sql/rbac_schema.sql, which run in one transaction and lock the rows they re-check.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from postgrest import APIError
from supabase import Client

from console_rbac.core.principal import ResourceRef, ResourceType
from console_rbac.database.store import (
    USER_COLUMNS, AccessLogRecord, AccessStore, AccessStoreError, AclRecord, DuplicateAclError,
    DuplicateResourceError, DuplicateRoleError, DuplicateUserError, PermissionRecord, ResourceRecord,
    RoleExpectation, RoleRecord, RoleWrite, StaleWriteError, UserRecord,
)

logger = logging.getLogger(__name__)

# Raised by rbac_check_role() and friends, detail is "<table>:<row id>"
STALE_ERRCODE = "RB409"
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

RESOURCE_TABLES = {
    ResourceType.PROJECT: ("projects", "project_id"),
    ResourceType.PROVIDER: ("providers", "provider_id"),
}

USER_SELECT = "id, email, name, status, role_id, roles(name)"
ACL_COLUMNS = "id, user_id, role_id, project_id, provider_id, roles(name)"


def _translate(e: APIError, duplicate: type = AccessStoreError) -> AccessStoreError:
    """Map a PostgREST error onto the access store error hierarchy"""
    if e.code == STALE_ERRCODE:
        table, _, row_id = (e.details or "").partition(":")
        return StaleWriteError(table or "unknown", row_id)
    if e.code == UNIQUE_VIOLATION:
        return duplicate(e.message)
    if e.code == FOREIGN_KEY_VIOLATION:
        return StaleWriteError("unknown", e.details or "")
    return AccessStoreError(f"{e.code}: {e.message}")


def _role_name(row: dict) -> Optional[str]:
    role = row.pop("roles", None)
    return role["name"] if role else None


class SupabaseAccessStore(AccessStore):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    # Users

    def _user(self, row: dict) -> UserRecord:
        role_name = _role_name(row)
        return UserRecord(**row, role_name=role_name)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        result = self.supabase.table("users")\
            .select(USER_SELECT)\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        return self._user(result.data[0]) if result.data else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        result = self.supabase.table("users")\
            .select(USER_SELECT)\
            .eq("email", email)\
            .limit(1)\
            .execute()
        return self._user(result.data[0]) if result.data else None

    def list_users(self, limit: int = 100, offset: int = 0) -> List[UserRecord]:
        result = self.supabase.table("users")\
            .select(USER_SELECT)\
            .order("email")\
            .limit(limit)\
            .offset(offset)\
            .execute()
        return [self._user(row) for row in result.data]

    def update_user(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        expectations: Sequence[RoleExpectation] = ()
    ) -> UserRecord:
        unknown = set(changes) - set(USER_COLUMNS)
        if unknown:
            raise ValueError(f"Not a user profile column: {sorted(unknown)}")
        try:
            self.supabase.rpc("rbac_update_user", {
                "p_user_id": user_id,
                "p_changes": dict(changes),
                "p_expectations": [e.model_dump(mode="json") for e in expectations],
            }).execute()
        except APIError as e:
            raise _translate(e, DuplicateUserError) from e
        user = self.get_user(user_id)
        if user is None:
            raise StaleWriteError("users", user_id)
        return user

    def delete_user(self, user_id: str, expectations: Sequence[RoleExpectation] = ()) -> None:
        try:
            self.supabase.rpc("rbac_delete_user", {
                "p_user_id": user_id,
                "p_expectations": [e.model_dump(mode="json") for e in expectations],
            }).execute()
        except APIError as e:
            raise _translate(e) from e

    # Resources and ACLs

    def get_resource(self, ref: ResourceRef) -> Optional[ResourceRecord]:
        table, _ = RESOURCE_TABLES[ref.type]
        result = self.supabase.table(table)\
            .select("id, name, description, owner_id")\
            .eq("id", ref.id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return ResourceRecord(**result.data[0], type=ref.type)

    def _acl(self, row: dict) -> AclRecord:
        role_name = _role_name(row)
        return AclRecord(**row, role_name=role_name)

    def get_acl(self, user_id: str, ref: ResourceRef) -> Optional[AclRecord]:
        _, column = RESOURCE_TABLES[ref.type]
        result = self.supabase.table("acls")\
            .select(ACL_COLUMNS)\
            .eq("user_id", user_id)\
            .eq(column, ref.id)\
            .limit(1)\
            .execute()
        return self._acl(result.data[0]) if result.data else None

    def list_acls(self, ref: ResourceRef) -> List[AclRecord]:
        _, column = RESOURCE_TABLES[ref.type]
        result = self.supabase.table("acls")\
            .select(ACL_COLUMNS)\
            .eq(column, ref.id)\
            .order("created_at")\
            .execute()
        return [self._acl(row) for row in result.data]

    # Roles and permissions

    def get_role(self, role_id: str) -> Optional[RoleRecord]:
        result = self.supabase.table("roles")\
            .select("id, name, description")\
            .eq("id", role_id)\
            .limit(1)\
            .execute()
        return RoleRecord(**result.data[0]) if result.data else None

    def get_role_by_name(self, name: str) -> Optional[RoleRecord]:
        result = self.supabase.table("roles")\
            .select("id, name, description")\
            .eq("name", name)\
            .limit(1)\
            .execute()
        return RoleRecord(**result.data[0]) if result.data else None

    def list_roles(self) -> List[RoleRecord]:
        result = self.supabase.table("roles")\
            .select("id, name, description")\
            .order("name")\
            .execute()
        return [RoleRecord(**row) for row in result.data]

    def list_permissions(self) -> List[PermissionRecord]:
        result = self.supabase.table("permissions")\
            .select("id, name, resource, action, description")\
            .order("name")\
            .execute()
        return [PermissionRecord(**row) for row in result.data]

    def get_role_permission_names(self, role_id: str) -> List[str]:
        result = self.supabase.table("role_permissions")\
            .select("permission_id, permissions(name)")\
            .eq("role_id", role_id)\
            .execute()
        return sorted(
            item["permissions"]["name"] for item in result.data if item.get("permissions")
        )

    def get_role_permission_map(self) -> Dict[str, List[str]]:
        # One request, so the snapshot reflects a single committed state
        result = self.supabase.table("roles")\
            .select("name, role_permissions(permissions(name))")\
            .execute()
        role_map = {}
        for role in result.data:
            role_map[role["name"]] = sorted(
                item["permissions"]["name"]
                for item in role.get("role_permissions") or []
                if item.get("permissions")
            )
        return role_map

    # Transactional writes

    def apply_role_writes(
        self,
        writes: Sequence[RoleWrite],
        expectations: Sequence[RoleExpectation] = ()
    ) -> int:
        if not writes:
            return 0
        try:
            result = self.supabase.rpc("rbac_apply_role_writes", {
                "p_writes": [w.model_dump(mode="json") for w in writes],
                "p_expectations": [e.model_dump(mode="json") for e in expectations],
            }).execute()
        except APIError as e:
            raise _translate(e) from e
        logger.debug(f"Applied {result.data} role writes")
        return result.data

    def create_acl(self, user_id: str, ref: ResourceRef, role_id: str) -> AclRecord:
        _, column = RESOURCE_TABLES[ref.type]
        try:
            result = self.supabase.table("acls").insert({
                "user_id": user_id,
                "role_id": role_id,
                column: ref.id,
            }).execute()
        except APIError as e:
            raise _translate(e, DuplicateAclError) from e
        if not result.data:
            raise AccessStoreError("Failed to create ACL")
        acl = self.get_acl(user_id, ref)
        if acl is None:
            raise StaleWriteError("acls", result.data[0]["id"])
        return acl

    def delete_acl(
        self,
        acl_id: str,
        expected_role_id: str,
        expectations: Sequence[RoleExpectation] = ()
    ) -> None:
        try:
            self.supabase.rpc("rbac_delete_acl", {
                "p_acl_id": acl_id,
                "p_expected_role_id": expected_role_id,
                "p_expectations": [e.model_dump(mode="json") for e in expectations],
            }).execute()
        except APIError as e:
            raise _translate(e) from e

    def create_resource(
        self,
        resource_type: ResourceType,
        name: str,
        description: Optional[str],
        owner_id: str,
        owner_role_id: str
    ) -> ResourceRecord:
        try:
            result = self.supabase.rpc("rbac_create_resource", {
                "p_type": resource_type.value,
                "p_name": name,
                "p_description": description,
                "p_owner_id": owner_id,
                "p_owner_role_id": owner_role_id,
            }).execute()
        except APIError as e:
            raise _translate(e, DuplicateResourceError) from e
        row = result.data
        return ResourceRecord(
            id=row["id"],
            type=resource_type,
            name=row["name"],
            description=row.get("description"),
            owner_id=row.get("owner_id"),
        )

    def delete_resource(self, ref: ResourceRef) -> bool:
        table, _ = RESOURCE_TABLES[ref.type]
        # acls rows go with it (on delete cascade)
        result = self.supabase.table(table)\
            .delete()\
            .eq("id", ref.id)\
            .execute()
        return len(result.data) > 0

    def create_role(self, name: str, description: Optional[str] = None) -> RoleRecord:
        try:
            result = self.supabase.table("roles").insert({
                "name": name,
                "description": description
            }).execute()
        except APIError as e:
            raise _translate(e, DuplicateRoleError) from e
        if not result.data:
            raise AccessStoreError("Failed to create role")
        row = result.data[0]
        return RoleRecord(id=row["id"], name=row["name"], description=row.get("description"))

    def replace_role_permissions(self, role_id: str, permission_ids: Sequence[str]) -> List[str]:
        try:
            result = self.supabase.rpc("rbac_replace_role_permissions", {
                "p_role_id": role_id,
                "p_permission_ids": list(permission_ids),
            }).execute()
        except APIError as e:
            if e.code == FOREIGN_KEY_VIOLATION:
                raise ValueError(f"Unknown permission ids: {e.details}") from e
            raise _translate(e) from e
        return sorted(result.data or [])

    def sync_catalog(self, matrix: dict) -> Dict[str, int]:
        try:
            self.supabase.table("permissions")\
                .upsert(matrix["permissions"], on_conflict="name")\
                .execute()
            self.supabase.table("roles")\
                .upsert(
                    [{"name": r["name"], "description": r["description"]} for r in matrix["roles"]],
                    on_conflict="name"
                )\
                .execute()
        except APIError as e:
            raise _translate(e) from e

        permission_ids = {p.name: p.id for p in self.list_permissions()}
        role_ids = {r.name: r.id for r in self.list_roles()}
        for role in matrix["roles"]:
            self.replace_role_permissions(
                role_ids[role["name"]],
                [permission_ids[name] for name in role["permissions"]]
            )
            logger.info(f"Synced role {role['name']} with {len(role['permissions'])} permissions")
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
        try:
            result = self.supabase.table("access_logs").insert({
                "user_email": user_email,
                "user_role": user_role,
                "method": method,
                "path": path,
                "ip": ip,
                "status": status,
            }).execute()
        except APIError as e:
            raise _translate(e) from e
        if not result.data:
            raise AccessStoreError("Failed to write access log")
        return AccessLogRecord(**result.data[0])

    def list_access_logs(self, before_id: Optional[int] = None, limit: int = 20) -> List[AccessLogRecord]:
        query = self.supabase.table("access_logs")\
            .select("id, user_email, user_role, method, path, ip, status, created_at")
        if before_id is not None:
            query = query.lt("id", before_id)
        result = query.order("id", desc=True)\
            .limit(limit)\
            .execute()
        return [AccessLogRecord(**row) for row in result.data]
