"""
Immutable role -> permission snapshot plus the registry that holds the current one.

A RoleCatalog is never modified after construction. Editing a role's permissions commits to
the store first; the registry then swaps in a freshly built snapshot.
"""
import logging
import threading
import time
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional

from console_rbac.config.permissions_config import (
    ASSIGNABLE_ROLES, OWNER_ROLES, ROLE_HIERARCHY, ROLE_PERMISSIONS, RoleScope, as_name,
)
from console_rbac.database.store import AccessStore

logger = logging.getLogger(__name__)


class RoleCatalog:
    def __init__(
        self,
        role_permissions: Mapping[str, Iterable[str]],
        hierarchy: Mapping[RoleScope, Mapping[str, int]] = ROLE_HIERARCHY
    ):
        self._role_permissions: Mapping[str, FrozenSet[str]] = MappingProxyType({
            as_name(role): frozenset(as_name(p) for p in permissions)
            for role, permissions in role_permissions.items()
        })
        self._hierarchy = hierarchy
        self.loaded_at = time.monotonic()

    @classmethod
    def from_seed(cls) -> "RoleCatalog":
        return cls({
            role.value: [p.value for p in permissions]
            for role, permissions in ROLE_PERMISSIONS.items()
        })

    @classmethod
    def from_store(cls, store: AccessStore) -> "RoleCatalog":
        return cls(store.get_role_permission_map())

    @property
    def role_names(self) -> FrozenSet[str]:
        return frozenset(self._role_permissions)

    def has_role(self, role: str) -> bool:
        return role in self._role_permissions

    def permissions_for(self, role: Optional[str]) -> FrozenSet[str]:
        if role is None:
            return frozenset()
        return self._role_permissions.get(role, frozenset())

    def has_permissions(self, role: Optional[str], required: Iterable[str]) -> bool:
        return frozenset(as_name(p) for p in required) <= self.permissions_for(role)

    def hierarchy_level(self, role: Optional[str], scope: RoleScope) -> Optional[int]:
        """Rank of role in scope, or None when the role is unranked there (a configuration fault)"""
        if role is None:
            return None
        return self._hierarchy[scope].get(role)

    @staticmethod
    def assignable_roles(scope: RoleScope):
        return ASSIGNABLE_ROLES[scope]

    @staticmethod
    def owner_role(scope: RoleScope) -> Optional[str]:
        return OWNER_ROLES.get(scope)


class CatalogRegistry:
    """Holds the current RoleCatalog. Snapshots older than ttl_seconds are reloaded from the store."""

    def __init__(self, store: AccessStore, ttl_seconds: int = 60):
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._catalog: Optional[RoleCatalog] = None

    def current(self) -> RoleCatalog:
        catalog = self._catalog
        if catalog is None or (self._ttl_seconds > 0 and time.monotonic() - catalog.loaded_at > self._ttl_seconds):
            catalog = self.reload()
        return catalog

    def reload(self) -> RoleCatalog:
        catalog = RoleCatalog.from_store(self._store)
        with self._lock:
            self._catalog = catalog
        logger.debug(f"Loaded role catalog with {len(catalog.role_names)} roles")
        return catalog

