"""
Access store interface.

Expected table structure (see sql/rbac_schema.sql for the Postgres version):

permissions:      id, name (unique), resource, action, description
roles:            id, name (unique), description
role_permissions: id, role_id, permission_id, unique (role_id, permission_id)
users:            id, email (unique), name, status, role_id (platform role)
projects:         id, name (unique), description, owner_id
providers:        id, name (unique), description, owner_id
acls:             id, user_id, role_id, project_id, provider_id
                  exactly one of project_id / provider_id is set
                  unique (user_id, project_id), unique (user_id, provider_id)
                  rows are deleted with their user, project or provider
access_logs:      id (ascending), user_email, user_role, method, path, ip, status, created_at

Every write method is atomic: either all of its rows change or none do.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel

from console_rbac.core.principal import ResourceRef, ResourceType


class UserStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    INVALID = "INVALID"


class UserRecord(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    status: UserStatus = UserStatus.PENDING
    role_id: Optional[str] = None
    role_name: Optional[str] = None


class RoleRecord(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class PermissionRecord(BaseModel):
    id: str
    name: str
    resource: str
    action: str
    description: Optional[str] = None


class ResourceRecord(BaseModel):
    id: str
    type: ResourceType
    name: str
    description: Optional[str] = None
    owner_id: Optional[str] = None

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(type=self.type, id=self.id)


class AclRecord(BaseModel):
    id: str
    user_id: str
    role_id: str
    role_name: str
    project_id: Optional[str] = None
    provider_id: Optional[str] = None

    @property
    def resource(self) -> ResourceRef:
        if self.project_id is not None:
            return ResourceRef(type=ResourceType.PROJECT, id=self.project_id)
        return ResourceRef(type=ResourceType.PROVIDER, id=self.provider_id)


class AccessLogRecord(BaseModel):
    id: int
    user_email: Optional[str] = None
    user_role: Optional[str] = None
    method: str
    path: str
    ip: Optional[str] = None
    status: int
    created_at: datetime


class RowKind(str, Enum):
    USER = "users"  # users.role_id, the platform role
    ACL = "acls"    # acls.role_id


class RoleExpectation(BaseModel):
    """A role column that must still hold expected_role_id when a write commits"""
    row_kind: RowKind
    row_id: str
    expected_role_id: Optional[str] = None


class RoleWrite(RoleExpectation):
    """Set the role column of one row, provided it still holds expected_role_id"""
    new_role_id: str


# Profile columns update_user may set
USER_COLUMNS = ("name", "email", "status", "role_id")


class AccessStoreError(Exception):
    pass


class StaleWriteError(AccessStoreError):
    """A row changed (or vanished) between validation and commit"""

    def __init__(self, table: str, row_id: str):
        super().__init__(f"{table} row {row_id} changed before commit")
        self.table = table
        self.row_id = row_id


class DuplicateAclError(AccessStoreError):
    pass


class DuplicateUserError(AccessStoreError):
    pass


class DuplicateRoleError(AccessStoreError):
    pass


class DuplicateResourceError(AccessStoreError):
    pass


class AccessStore(ABC):
    """CRUD and transaction interface the authorization engine runs against"""

    # Users
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def list_users(self, limit: int = 100, offset: int = 0) -> List[UserRecord]: ...

    @abstractmethod
    def update_user(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        expectations: Sequence[RoleExpectation] = ()
    ) -> UserRecord:
        """Set profile columns (USER_COLUMNS) of one user.

        Raises StaleWriteError if the user is gone or an expectation fails, DuplicateUserError
        if the new email belongs to someone else.
        """

    @abstractmethod
    def delete_user(self, user_id: str, expectations: Sequence[RoleExpectation] = ()) -> None:
        """Delete the profile with its ACLs; resources it owned keep existing without owner_id"""

    # Resources and ACLs
    @abstractmethod
    def get_resource(self, ref: ResourceRef) -> Optional[ResourceRecord]: ...

    @abstractmethod
    def get_acl(self, user_id: str, ref: ResourceRef) -> Optional[AclRecord]: ...

    @abstractmethod
    def list_acls(self, ref: ResourceRef) -> List[AclRecord]: ...

    # Roles and permissions
    @abstractmethod
    def get_role(self, role_id: str) -> Optional[RoleRecord]: ...

    @abstractmethod
    def get_role_by_name(self, name: str) -> Optional[RoleRecord]: ...

    @abstractmethod
    def list_roles(self) -> List[RoleRecord]: ...

    @abstractmethod
    def list_permissions(self) -> List[PermissionRecord]: ...

    @abstractmethod
    def get_role_permission_names(self, role_id: str) -> List[str]: ...

    @abstractmethod
    def get_role_permission_map(self) -> Dict[str, List[str]]:
        """Role name -> permission names, for every role"""

    # Transactional writes
    @abstractmethod
    def apply_role_writes(
        self,
        writes: Sequence[RoleWrite],
        expectations: Sequence[RoleExpectation] = ()
    ) -> int:
        """Apply every write or none. Raises StaleWriteError when any precondition fails."""

    @abstractmethod
    def create_acl(self, user_id: str, ref: ResourceRef, role_id: str) -> AclRecord:
        """Raises DuplicateAclError if the user already has an ACL on the resource"""

    @abstractmethod
    def delete_acl(
        self,
        acl_id: str,
        expected_role_id: str,
        expectations: Sequence[RoleExpectation] = ()
    ) -> None:
        """Raises StaleWriteError if the row is gone, its role changed or an expectation fails"""

    @abstractmethod
    def create_resource(
        self,
        resource_type: ResourceType,
        name: str,
        description: Optional[str],
        owner_id: str,
        owner_role_id: str
    ) -> ResourceRecord:
        """Create the resource and its owner ACL together. Raises DuplicateResourceError on name clash."""

    @abstractmethod
    def delete_resource(self, ref: ResourceRef) -> bool:
        """Delete the resource and all of its ACLs"""

    @abstractmethod
    def create_role(self, name: str, description: Optional[str] = None) -> RoleRecord:
        """Raises DuplicateRoleError if the name is taken"""

    @abstractmethod
    def replace_role_permissions(self, role_id: str, permission_ids: Sequence[str]) -> List[str]:
        """Delete the role's whole permission set and insert the new one. Returns permission names."""

    @abstractmethod
    def sync_catalog(self, matrix: dict) -> Dict[str, int]:
        """Idempotently upsert the permission matrix (see permissions_config.get_permission_matrix)"""

    # Audit trail
    @abstractmethod
    def record_access(
        self,
        user_email: Optional[str],
        user_role: Optional[str],
        method: str,
        path: str,
        ip: Optional[str],
        status: int
    ) -> AccessLogRecord: ...

    @abstractmethod
    def list_access_logs(self, before_id: Optional[int] = None, limit: int = 20) -> List[AccessLogRecord]:
        """Newest first; before_id pages back from an earlier result"""
