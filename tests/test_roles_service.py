import pytest

from console_rbac.config.permissions_config import Permission
from console_rbac.core.outcomes import OutcomeKind
from console_rbac.modules.roles.service import RoleCatalogService


@pytest.fixture
def service(store, catalogs):
    return RoleCatalogService(store, catalogs)


@pytest.fixture
def request_by_root(gate, people, principal_of):
    return gate.authorize(principal_of(people.super_admin), [Permission.ROLE_MANAGEMENT]).value


def test_list_roles_includes_permissions(service):
    roles = {r.name: r for r in service.list_roles()}
    assert "PROJECT_READ" in roles["PROJECT_VIEWER"].permissions
    assert "ROLE_MANAGEMENT" in roles["SUPER_ADMIN"].permissions


def test_create_role(service, request_by_root, catalogs):
    created = service.create_role(request_by_root, "AUDITOR", "read-only")
    assert created.ok
    assert catalogs.current().has_role("AUDITOR")
    assert catalogs.current().permissions_for("AUDITOR") == frozenset()

    duplicate = service.create_role(request_by_root, "AUDITOR")
    assert duplicate.kind == OutcomeKind.BAD_REQUEST
    assert duplicate.reason == "Role already exists."


def test_replace_role_permissions_publishes_new_snapshot(service, store, catalogs, request_by_root):
    before = catalogs.current()
    viewer = store.get_role_by_name("PROJECT_VIEWER")
    outcome = service.replace_role_permissions(request_by_root, viewer.id, ["PROJECT_READ", "PROJECT_READ"])
    assert outcome.ok
    assert outcome.value.permissions == ["PROJECT_READ"]
    assert catalogs.current() is not before
    assert catalogs.current().permissions_for("PROJECT_VIEWER") == frozenset({"PROJECT_READ"})
    assert "TEMPLATE_READ" in before.permissions_for("PROJECT_VIEWER")


def test_replace_with_unknown_permission_changes_nothing(service, store, catalogs, request_by_root):
    viewer = store.get_role_by_name("PROJECT_VIEWER")
    original = store.get_role_permission_names(viewer.id)
    outcome = service.replace_role_permissions(request_by_root, viewer.id, ["PROJECT_READ", "FLY"])
    assert outcome.kind == OutcomeKind.BAD_REQUEST
    assert outcome.reason == "One or more permissions are invalid."
    assert store.get_role_permission_names(viewer.id) == original


def test_replace_for_unknown_role(service, request_by_root):
    outcome = service.replace_role_permissions(request_by_root, "missing", [])
    assert outcome.kind == OutcomeKind.NOT_FOUND
    assert service.get_role_with_permissions("missing").kind == OutcomeKind.NOT_FOUND
