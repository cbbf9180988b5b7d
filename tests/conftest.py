from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from console_rbac.config.permissions_config import ROLE_HIERARCHY, RoleScope
from console_rbac.core.authorization import AuthorizationGate
from console_rbac.core.catalog import CatalogRegistry
from console_rbac.core.guard import PrivilegeMutationGuard
from console_rbac.core.mutator import BulkRoleMutator
from console_rbac.core.principal import Principal, ResourceType
from console_rbac.database.memory_store import InMemoryAccessStore
from console_rbac.database.store import UserRecord


def _principal_of(user: UserRecord) -> Principal:
    return Principal(
        id=user.id,
        email=user.email,
        platform_role=user.role_name,
        platform_role_level=ROLE_HIERARCHY[RoleScope.PLATFORM][user.role_name],
    )


@pytest.fixture
def store():
    return InMemoryAccessStore()


@pytest.fixture
def catalogs(store):
    # ttl 0: never expires, tests reload explicitly
    return CatalogRegistry(store, ttl_seconds=0)


@pytest.fixture
def gate(store, catalogs):
    return AuthorizationGate(store, catalogs)


@pytest.fixture
def guard(store, catalogs):
    return PrivilegeMutationGuard(store, catalogs)


@pytest.fixture
def mutator(store, guard):
    return BulkRoleMutator(store, guard)


@pytest.fixture
def principal_of():
    return _principal_of


@pytest.fixture
def people(store):
    return SimpleNamespace(
        super_admin=store.add_user("root@example.com", "Root", "SUPER_ADMIN"),
        admin=store.add_user("admin@example.com", "Ada", "ADMIN"),
        admin2=store.add_user("admin2@example.com", "Alan", "ADMIN"),
        owner=store.add_user("owner@example.com", "Olive"),
        contributor=store.add_user("contrib@example.com", "Carl"),
        viewer=store.add_user("viewer@example.com", "Vera"),
        outsider=store.add_user("outsider@example.com", "Otto"),
    )


@pytest.fixture
def project(store, people):
    """Project owned by people.owner with a contributor and a viewer"""
    record = store.create_resource(
        ResourceType.PROJECT, "apollo", "test project", people.owner.id,
        store.get_role_by_name("PROJECT_OWNER").id,
    )
    store.create_acl(people.contributor.id, record.ref, store.get_role_by_name("PROJECT_CONTRIBUTOR").id)
    store.create_acl(people.viewer.id, record.ref, store.get_role_by_name("PROJECT_VIEWER").id)
    return record.ref


@pytest.fixture
def provider(store, people):
    """Provider owned by people.admin with people.viewer as PROVIDER_VIEWER"""
    record = store.create_resource(
        ResourceType.PROVIDER, "aws-main", None, people.admin.id,
        store.get_role_by_name("PROVIDER_OWNER").id,
    )
    store.create_acl(people.viewer.id, record.ref, store.get_role_by_name("PROVIDER_VIEWER").id)
    return record.ref


class FakeAuthService:
    """Accepts the user id itself as bearer token"""

    def get_current_user(self, token: str):
        if not token or token == "invalid":
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return {"id": token, "email": None}


@pytest.fixture
def client(store, catalogs):
    from console_rbac.core.dependencies import get_auth_service, get_catalog_registry
    from console_rbac.database import get_access_store
    from console_rbac.main import app, limiter

    limiter.reset()
    app.dependency_overrides[get_access_store] = lambda: store
    app.dependency_overrides[get_catalog_registry] = lambda: catalogs
    app.dependency_overrides[get_auth_service] = lambda: FakeAuthService()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user: UserRecord):
        return {"Authorization": f"Bearer {user.id}"}
    return headers
