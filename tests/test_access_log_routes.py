from console_rbac.config import settings

ACCESS_LOG = "/api/v1/access-control/access-log"
ME = "/api/v1/auth/me"


def test_authenticated_calls_are_recorded(client, auth, store, people):
    assert client.get(ME, headers={**auth(people.owner), "X-Forwarded-For": "203.0.113.7, 10.0.0.1"}).status_code == 200
    assert client.get("/api/v1/access-control/users?limit=5", headers=auth(people.owner)).status_code == 403

    logs = store.list_access_logs()
    assert [(log.path, log.status) for log in logs] == [
        ("/api/v1/access-control/users?limit=5", 403),
        (ME, 200),
    ]
    assert logs[1].user_email == "owner@example.com"
    assert logs[1].user_role == "USER"
    assert logs[1].method == "GET"
    assert logs[1].ip == "203.0.113.7"


def test_anonymous_and_rejected_tokens_are_not_recorded(client, store):
    client.get("/health")
    client.get(ME)
    client.get(ME, headers={"Authorization": "Bearer invalid"})
    assert store.list_access_logs() == []


def test_listing_requires_platform_admin(client, auth, people):
    resp = client.get(ACCESS_LOG, headers=auth(people.owner))
    assert resp.status_code == 403

    resp = client.get(ACCESS_LOG, headers=auth(people.admin))
    assert resp.status_code == 200
    # the owner's refused call is already on record
    assert resp.json()["logs"][0]["user_email"] == "owner@example.com"
    assert resp.json()["logs"][0]["status"] == 403


def test_listing_pages_with_a_cursor(client, auth, store, people):
    for _ in range(3):
        client.get(ME, headers=auth(people.viewer))

    first = client.get(ACCESS_LOG, params={"limit": 2}, headers=auth(people.admin)).json()
    assert len(first["logs"]) == 2
    assert first["next_cursor"] == first["logs"][-1]["id"]

    second = client.get(ACCESS_LOG, params={"limit": 2, "cursor": first["next_cursor"]},
                        headers=auth(people.admin)).json()
    assert len(second["logs"]) == 1
    assert second["next_cursor"] is None
    ids = [log["id"] for log in first["logs"] + second["logs"]]
    assert ids == sorted(ids, reverse=True)


def test_listing_rejects_bad_paging(client, auth, people):
    assert client.get(ACCESS_LOG, params={"limit": 0}, headers=auth(people.admin)).status_code == 422
    assert client.get(ACCESS_LOG, params={"cursor": 0}, headers=auth(people.admin)).status_code == 422


def test_recording_can_be_disabled(client, auth, store, people, monkeypatch):
    monkeypatch.setattr(settings, "access_log_enabled", False)
    assert client.get(ME, headers=auth(people.owner)).status_code == 200
    assert store.list_access_logs() == []
