from console_rbac.config.permissions_config import Permission
from console_rbac.core.authorization import ACCESS_DENIED
from console_rbac.core.outcomes import OutcomeKind
from console_rbac.core.principal import Principal, ResourceRef, ResourceType
from console_rbac.database.store import RoleWrite, RowKind


def test_permissions_must_be_specified(gate, people, principal_of):
    outcome = gate.authorize(principal_of(people.owner), [])
    assert outcome.kind == OutcomeKind.BAD_REQUEST
    assert outcome.reason == "Permissions not specified"


def test_platform_check_uses_platform_role(gate, people, principal_of):
    user = principal_of(people.owner)
    assert gate.authorize(user, [Permission.PROJECT_CREATE]).ok
    denied = gate.authorize(user, [Permission.ADMIN_USER_MANAGEMENT])
    assert denied.kind == OutcomeKind.FORBIDDEN
    assert denied.reason == ACCESS_DENIED

    allowed = gate.authorize(principal_of(people.admin), [Permission.ADMIN_USER_MANAGEMENT])
    assert allowed.ok
    assert allowed.value.effective_role == "ADMIN"
    assert allowed.value.resource is None


def test_unknown_platform_role_is_an_internal_fault(gate, people):
    ghost = Principal(id=people.owner.id, platform_role="GHOST", platform_role_level=9)
    assert gate.authorize(ghost, [Permission.PROJECT_READ]).kind == OutcomeKind.INTERNAL_FAULT


def test_acl_role_decides_on_resource(gate, people, project, principal_of):
    owner = gate.authorize(principal_of(people.owner), [Permission.PROJECT_DELETE, Permission.PROJECT_ACCESS_CONTROL], project)
    assert owner.ok
    assert owner.value.effective_role == "PROJECT_OWNER"
    assert owner.value.resource == project

    viewer = principal_of(people.viewer)
    assert gate.authorize(viewer, [Permission.PROJECT_READ], project).ok
    assert gate.authorize(viewer, [Permission.PROJECT_UPDATE], project).kind == OutcomeKind.FORBIDDEN


def test_every_required_permission_must_be_held(gate, people, project, principal_of):
    contributor = principal_of(people.contributor)
    assert gate.authorize(contributor, [Permission.PROJECT_UPDATE], project).ok
    outcome = gate.authorize(contributor, [Permission.PROJECT_UPDATE, Permission.PROJECT_ACCESS_CONTROL], project)
    assert outcome.kind == OutcomeKind.FORBIDDEN


def test_non_member_cannot_learn_existence(gate, people, project, principal_of):
    outsider = principal_of(people.outsider)
    existing = gate.authorize(outsider, [Permission.PROJECT_READ], project)
    missing = gate.authorize(outsider, [Permission.PROJECT_READ], ResourceRef(type=ResourceType.PROJECT, id="nope"))
    assert existing.kind == missing.kind == OutcomeKind.FORBIDDEN
    assert existing.reason == missing.reason


def test_platform_admins_act_as_owner(gate, people, project, principal_of):
    for user in (people.admin, people.super_admin):
        outcome = gate.authorize(principal_of(user), [Permission.PROJECT_ACCESS_CONTROL], project)
        assert outcome.ok
        assert outcome.value.effective_role == "PROJECT_OWNER"

    missing = gate.authorize(principal_of(people.admin), [Permission.PROJECT_READ],
                             ResourceRef(type=ResourceType.PROJECT, id="nope"))
    assert missing.kind == OutcomeKind.NOT_FOUND
    assert missing.reason == "Project not found"


def test_acls_do_not_leak_across_resource_types(gate, people, project, provider, principal_of):
    # viewer holds PROVIDER_VIEWER on the provider, PROJECT_VIEWER on the project
    viewer = principal_of(people.viewer)
    assert gate.authorize(viewer, [Permission.PROVIDER_READ], provider).ok
    assert gate.authorize(viewer, [Permission.PROVIDER_READ], project).kind == OutcomeKind.FORBIDDEN
    assert gate.authorize(principal_of(people.owner), [Permission.PROVIDER_READ], provider).kind == OutcomeKind.FORBIDDEN


def test_authorize_is_deterministic(gate, people, project, principal_of):
    viewer = principal_of(people.viewer)
    results = [gate.authorize(viewer, [Permission.PROJECT_READ], project) for _ in range(3)]
    assert all(r == results[0] for r in results)


def test_effective_role(gate, store, people, project, principal_of):
    contributor = gate.effective_role(principal_of(people.contributor), project)
    assert contributor.name == "PROJECT_CONTRIBUTOR"
    assert contributor.source.row_kind == RowKind.ACL
    assert contributor.source.expected_role_id == store.get_role_by_name("PROJECT_CONTRIBUTOR").id

    # platform admins stand as owner, on the strength of their user row
    admin = gate.effective_role(principal_of(people.admin), project)
    assert admin.name == "PROJECT_OWNER"
    assert (admin.source.row_kind, admin.source.row_id) == (RowKind.USER, people.admin.id)

    assert gate.effective_role(principal_of(people.outsider), project) is None
    assert gate.effective_role(principal_of(people.outsider), None).name == "USER"


def test_effective_role_reads_the_stored_platform_role(gate, store, people, project, principal_of):
    stale_principal = principal_of(people.admin)
    store.apply_role_writes([RoleWrite(
        row_kind=RowKind.USER, row_id=people.admin.id,
        expected_role_id=people.admin.role_id, new_role_id=store.get_role_by_name("USER").id,
    )])
    assert gate.effective_role(stale_principal, None).name == "USER"
    assert gate.effective_role(stale_principal, project) is None
