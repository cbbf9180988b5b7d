import pytest

from console_rbac.config.permissions_config import (
    ASSIGNABLE_ROLES, OWNER_ROLES, ROLE_HIERARCHY, Permission, RoleScope, get_permission_matrix,
)
from console_rbac.core.catalog import CatalogRegistry, RoleCatalog


def test_every_assignable_and_owner_role_has_a_unique_rank():
    for scope, levels in ROLE_HIERARCHY.items():
        assert len(set(levels.values())) == len(levels)
        for role in ASSIGNABLE_ROLES[scope]:
            assert role in levels
        if scope in OWNER_ROLES:
            assert levels[OWNER_ROLES[scope]] == 1


def test_super_admin_is_never_assignable():
    assert "SUPER_ADMIN" not in ASSIGNABLE_ROLES[RoleScope.PLATFORM]


def test_role_management_is_granted_to_super_admin_only():
    catalog = RoleCatalog.from_seed()
    holders = [r for r in catalog.role_names if Permission.ROLE_MANAGEMENT.value in catalog.permissions_for(r)]
    assert holders == ["SUPER_ADMIN"]


def test_permission_matrix_lists_every_permission_once():
    matrix = get_permission_matrix()
    names = [p["name"] for p in matrix["permissions"]]
    assert len(names) == len(set(names)) == len(Permission)
    assert {r["name"] for r in matrix["roles"]} == RoleCatalog.from_seed().role_names


def test_unranked_role_has_no_level():
    catalog = RoleCatalog.from_seed()
    assert catalog.hierarchy_level("PROJECT_OWNER", RoleScope.PROJECT) == 1
    assert catalog.hierarchy_level("PROJECT_OWNER", RoleScope.PLATFORM) is None
    assert catalog.hierarchy_level(None, RoleScope.PLATFORM) is None


def test_has_permissions_accepts_enum_members():
    catalog = RoleCatalog.from_seed()
    assert catalog.has_permissions("PROJECT_VIEWER", [Permission.PROJECT_READ])
    assert not catalog.has_permissions("PROJECT_VIEWER", [Permission.PROJECT_READ, Permission.PROJECT_UPDATE])
    assert catalog.permissions_for("NO_SUCH_ROLE") == frozenset()


def test_store_catalog_matches_seed(store):
    seeded = RoleCatalog.from_seed()
    loaded = RoleCatalog.from_store(store)
    for role in seeded.role_names:
        assert loaded.permissions_for(role) == seeded.permissions_for(role)


def test_registry_keeps_snapshot_until_reload(store, catalogs):
    before = catalogs.current()
    viewer = store.get_role_by_name("PROJECT_VIEWER")
    store.replace_role_permissions(viewer.id, [])

    assert catalogs.current() is before
    assert "PROJECT_READ" in before.permissions_for("PROJECT_VIEWER")

    after = catalogs.reload()
    assert after is not before
    assert after.permissions_for("PROJECT_VIEWER") == frozenset()
    # the old snapshot is untouched
    assert "PROJECT_READ" in before.permissions_for("PROJECT_VIEWER")


def test_registry_reloads_expired_snapshot(store):
    registry = CatalogRegistry(store, ttl_seconds=30)
    first = registry.current()
    assert registry.current() is first
    first.loaded_at -= 60
    assert registry.current() is not first


def test_snapshot_permission_sets_are_immutable():
    with pytest.raises(AttributeError):
        RoleCatalog.from_seed().permissions_for("ADMIN").add("X")
