import pytest

from console_rbac.config.permissions_config import PERMISSION_MATRIX
from console_rbac.core.principal import ResourceRef, ResourceType
from console_rbac.database.memory_store import InMemoryAccessStore
from console_rbac.database.store import (
    DuplicateAclError, DuplicateResourceError, DuplicateRoleError, DuplicateUserError, RoleExpectation,
    RoleWrite, RowKind, StaleWriteError, UserStatus,
)


def _role_id(store, name):
    return store.get_role_by_name(name).id


def test_sync_catalog_is_idempotent():
    store = InMemoryAccessStore(seed=False)
    assert store.sync_catalog(PERMISSION_MATRIX) == {
        "permissions": len(PERMISSION_MATRIX["permissions"]),
        "roles": len(PERMISSION_MATRIX["roles"]),
    }
    roles = store.list_roles()
    store.sync_catalog(PERMISSION_MATRIX)
    assert store.list_roles() == roles
    assert len(store.list_permissions()) == len(PERMISSION_MATRIX["permissions"])


def test_add_user_defaults_to_user_role(store):
    user = store.add_user("someone@example.com")
    assert user.role_name == "USER"
    assert store.get_user_by_email("someone@example.com") == user
    with pytest.raises(ValueError):
        store.add_user("x@example.com", role_name="NOPE")


def test_apply_role_writes_is_all_or_nothing(store, people):
    user_role = _role_id(store, "USER")
    admin_role = _role_id(store, "ADMIN")
    writes = [
        RoleWrite(row_kind=RowKind.USER, row_id=people.owner.id, expected_role_id=user_role, new_role_id=admin_role),
        # stale: contributor is USER, not ADMIN
        RoleWrite(row_kind=RowKind.USER, row_id=people.contributor.id, expected_role_id=admin_role, new_role_id=user_role),
    ]
    with pytest.raises(StaleWriteError) as exc:
        store.apply_role_writes(writes)
    assert exc.value.table == "users"
    assert exc.value.row_id == people.contributor.id
    assert store.get_user(people.owner.id).role_name == "USER"


def test_apply_role_writes_checks_expectations(store, people):
    user_role = _role_id(store, "USER")
    write = RoleWrite(row_kind=RowKind.USER, row_id=people.owner.id, expected_role_id=user_role,
                      new_role_id=_role_id(store, "ADMIN"))
    stale = RoleExpectation(row_kind=RowKind.USER, row_id=people.admin.id, expected_role_id=user_role)
    with pytest.raises(StaleWriteError):
        store.apply_role_writes([write], [stale])
    assert store.get_user(people.owner.id).role_name == "USER"

    assert store.apply_role_writes([write]) == 1
    assert store.get_user(people.owner.id).role_name == "ADMIN"


def test_apply_role_writes_rejects_missing_rows(store):
    write = RoleWrite(row_kind=RowKind.ACL, row_id="missing", expected_role_id=None,
                      new_role_id=_role_id(store, "PROJECT_VIEWER"))
    with pytest.raises(StaleWriteError):
        store.apply_role_writes([write])


def test_create_resource_creates_owner_acl(store, people):
    record = store.create_resource(ResourceType.PROJECT, "zeus", None, people.owner.id, _role_id(store, "PROJECT_OWNER"))
    acl = store.get_acl(people.owner.id, record.ref)
    assert acl.role_name == "PROJECT_OWNER"
    assert acl.resource == record.ref
    assert acl.provider_id is None

    with pytest.raises(DuplicateResourceError):
        store.create_resource(ResourceType.PROJECT, "zeus", None, people.owner.id, _role_id(store, "PROJECT_OWNER"))


def test_create_acl_is_unique_per_user_and_resource(store, people, project):
    with pytest.raises(DuplicateAclError):
        store.create_acl(people.viewer.id, project, _role_id(store, "PROJECT_CONTRIBUTOR"))
    with pytest.raises(StaleWriteError):
        store.create_acl(people.outsider.id, ResourceRef(type=ResourceType.PROJECT, id="gone"), _role_id(store, "PROJECT_VIEWER"))


def test_same_id_space_does_not_mix_projects_and_providers(store, people, project):
    as_provider = ResourceRef(type=ResourceType.PROVIDER, id=project.id)
    assert store.get_resource(as_provider) is None
    assert store.get_acl(people.owner.id, as_provider) is None


def test_delete_acl_requires_unchanged_role(store, people, project):
    acl = store.get_acl(people.viewer.id, project)
    with pytest.raises(StaleWriteError):
        store.delete_acl(acl.id, _role_id(store, "PROJECT_CONTRIBUTOR"))
    store.delete_acl(acl.id, acl.role_id)
    assert store.get_acl(people.viewer.id, project) is None


def test_delete_resource_cascades_acls(store, people, project):
    assert len(store.list_acls(project)) == 3
    assert store.delete_resource(project) is True
    assert store.list_acls(project) == []
    assert store.get_resource(project) is None
    assert store.delete_resource(project) is False


def test_create_role_rejects_duplicates(store):
    role = store.create_role("AUDITOR", "read-only auditor")
    assert store.get_role_permission_names(role.id) == []
    with pytest.raises(DuplicateRoleError):
        store.create_role("AUDITOR")


def test_replace_role_permissions(store):
    role = store.create_role("AUDITOR")
    read = next(p for p in store.list_permissions() if p.name == "PROJECT_READ")
    assert store.replace_role_permissions(role.id, [read.id]) == ["PROJECT_READ"]
    assert store.get_role_permission_map()["AUDITOR"] == ["PROJECT_READ"]

    with pytest.raises(ValueError):
        store.replace_role_permissions(role.id, ["unknown-permission-id"])
    assert store.get_role_permission_names(role.id) == ["PROJECT_READ"]

    with pytest.raises(StaleWriteError):
        store.replace_role_permissions("unknown-role-id", [])


def test_update_user(store, people):
    updated = store.update_user(people.owner.id, {"name": "Olivia", "email": "olivia@example.com"})
    assert updated.name == "Olivia"
    assert store.get_user_by_email("olivia@example.com").id == people.owner.id
    assert store.get_user_by_email("owner@example.com") is None

    with pytest.raises(DuplicateUserError):
        store.update_user(people.owner.id, {"email": "admin@example.com"})
    with pytest.raises(ValueError):
        store.update_user(people.owner.id, {"password": "hunter2"})
    with pytest.raises(StaleWriteError):
        store.update_user("ghost", {"name": "Ghost"})


def test_update_user_checks_expectations(store, people):
    pending = store.add_user("new@example.com", role_name=None, status=UserStatus.PENDING)
    stale = RoleExpectation(row_kind=RowKind.USER, row_id=pending.id, expected_role_id=_role_id(store, "USER"))
    with pytest.raises(StaleWriteError):
        store.update_user(pending.id, {"status": "VERIFIED"}, [stale])
    assert store.get_user(pending.id).status == UserStatus.PENDING

    fresh = RoleExpectation(row_kind=RowKind.USER, row_id=pending.id, expected_role_id=None)
    confirmed = store.update_user(pending.id, {"status": "VERIFIED", "role_id": _role_id(store, "USER")}, [fresh])
    assert confirmed.status == UserStatus.VERIFIED
    assert confirmed.role_name == "USER"


def test_delete_user_drops_acls_and_ownership(store, people, project):
    store.delete_user(people.owner.id)
    assert store.get_user(people.owner.id) is None
    assert store.get_acl(people.owner.id, project) is None
    assert store.get_resource(project).owner_id is None
    assert len(store.list_acls(project)) == 2

    with pytest.raises(StaleWriteError):
        store.delete_user(people.owner.id)


def test_delete_user_checks_expectations(store, people):
    stale = RoleExpectation(row_kind=RowKind.USER, row_id=people.owner.id, expected_role_id=_role_id(store, "ADMIN"))
    with pytest.raises(StaleWriteError):
        store.delete_user(people.owner.id, [stale])
    assert store.get_user(people.owner.id) is not None


def test_access_logs_are_listed_newest_first(store):
    for i in range(5):
        store.record_access("a@example.com", "ADMIN", "GET", f"/api/v1/{i}", "10.0.0.1", 200)
    logs = store.list_access_logs(limit=2)
    assert [log.path for log in logs] == ["/api/v1/4", "/api/v1/3"]
    older = store.list_access_logs(before_id=logs[-1].id, limit=10)
    assert [log.path for log in older] == ["/api/v1/2", "/api/v1/1", "/api/v1/0"]
    assert older[0].created_at.tzinfo is not None
