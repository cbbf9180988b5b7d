PROVIDERS = "/api/v1/providers"


def test_only_platform_admins_create_providers(client, auth, store, people):
    assert client.post(PROVIDERS, json={"name": "gcp"}, headers=auth(people.owner)).status_code == 403

    resp = client.post(PROVIDERS, json={"name": "gcp"}, headers=auth(people.admin2))
    assert resp.status_code == 201
    assert resp.json()["type"] == "provider"


def test_provider_members_require_access_control_permission(client, auth, people, provider):
    url = f"{PROVIDERS}/{provider.id}/access-control"
    assert client.get(url, headers=auth(people.viewer)).status_code == 403

    resp = client.get(url, headers=auth(people.admin))
    assert resp.status_code == 200
    assert {m["role"] for m in resp.json()} == {"PROVIDER_OWNER", "PROVIDER_VIEWER"}


def test_provider_owner_promotes_viewer(client, auth, store, people, provider):
    resp = client.put(f"{PROVIDERS}/{provider.id}/access-control", json={"members": [
        {"userId": people.viewer.id, "newRole": "PROVIDER_EDITOR"},
    ]}, headers=auth(people.admin))
    assert resp.status_code == 200
    assert store.get_acl(people.viewer.id, provider).role_name == "PROVIDER_EDITOR"


def test_provider_roles_are_restricted_to_provider_scope(client, auth, people, provider):
    resp = client.post(f"{PROVIDERS}/{provider.id}/access-control",
                       json={"email": "owner@example.com", "role": "PROJECT_VIEWER"}, headers=auth(people.admin))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid role: PROJECT_VIEWER. Must be one of: PROVIDER_EDITOR, PROVIDER_VIEWER"


def test_delete_provider(client, auth, store, people, provider):
    assert client.delete(f"{PROVIDERS}/{provider.id}", headers=auth(people.viewer)).status_code == 403
    assert client.delete(f"{PROVIDERS}/{provider.id}", headers=auth(people.admin)).status_code == 200
    assert store.list_acls(provider) == []
