import uuid

from taskbill.db import models
from taskbill.utils import api_key_crypto


def _h(email, user="admin"):
    return {"x-auth-request-user": user, "x-auth-request-email": email}


def test_only_key_managers_can_create(client, make_user):
    admin = make_user(role="admin")
    r = client.post("/api-keys", json={"name": "n8n", "permissions": ["read:tasks"]}, headers=_h(admin.email))
    assert r.status_code == 403


def test_create_returns_raw_key_once(client, db_session, make_user):
    superuser = make_user(role="superuser")
    r = client.post(
        "/api-keys",
        json={"name": "Zapier", "permissions": ["read:projects", "Read:Tasks"], "rate_limit": 5},
        headers=_h(superuser.email),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    raw = body["key"]
    assert raw.startswith("tmp_")
    assert body["key_prefix"] == raw[:8]
    assert body["permissions"] == ["read:projects", "read:tasks"]
    assert body["created_by"] == str(superuser.id)

    stored = db_session.get(models.ApiKey, uuid.UUID(body["id"]))
    assert stored.key_hash == api_key_crypto.hash_key(raw)
    assert stored.rate_limits[0].requests_per_minute == 5

    r = client.get("/api-keys", headers=_h(superuser.email))
    assert r.status_code == 200
    listed = r.json()
    assert len(listed) == 1
    assert "key" not in listed[0]


def test_create_validation(client, make_user):
    superuser = make_user(role="superuser")
    headers = _h(superuser.email)
    assert client.post("/api-keys", json={"name": "x", "permissions": []}, headers=headers).status_code == 422
    assert client.post(
        "/api-keys", json={"name": "x", "permissions": ["admin:all"]}, headers=headers
    ).status_code == 422
    assert client.post(
        "/api-keys", json={"name": "x", "permissions": ["read:tasks"], "rate_limit": 0}, headers=headers
    ).status_code == 422


def test_update_and_revoke(client, db_session, make_user, make_api_key):
    superuser = make_user(role="superuser")
    api_key, _raw = make_api_key(rate_limit=10)
    key_id = api_key.id

    r = client.patch(
        f"/api-keys/{key_id}",
        json={"name": "renamed", "is_active": False, "rate_limit": 30},
        headers=_h(superuser.email),
    )
    assert r.status_code == 200
    assert r.json()["name"] == "renamed"
    assert r.json()["is_active"] is False
    assert r.json()["rate_limit"] == 30

    r = client.get(f"/api-keys/{key_id}/rate-limits", headers=_h(superuser.email))
    assert r.json()[0]["requests_per_minute"] == 30

    r = client.delete(f"/api-keys/{key_id}", headers=_h(superuser.email))
    assert r.status_code == 204
    db_session.expire_all()
    assert db_session.get(models.ApiKey, key_id) is None
    assert client.delete(f"/api-keys/{key_id}", headers=_h(superuser.email)).status_code == 404

    actions = [row.action_type for row in db_session.query(models.AuditLog).all()]
    assert "api_key_update" in actions
    assert "api_key_revoke" in actions


def test_rate_limit_update(client, make_user, make_api_key):
    superuser = make_user(role="superuser")
    api_key, _raw = make_api_key()

    r = client.put(
        f"/api-keys/{api_key.id}/rate-limits",
        json={"requests_per_minute": 12, "requests_per_hour": 300},
        headers=_h(superuser.email),
    )
    assert r.status_code == 200
    (limit,) = r.json()
    assert limit["requests_per_minute"] == 12
    assert limit["requests_per_hour"] == 300
    assert limit["endpoint_pattern"] == "*"

    r = client.get("/api-keys", headers=_h(superuser.email))
    assert r.json()[0]["rate_limit"] == 12


def test_usage_summary_and_logs(client, make_user, make_api_key):
    superuser = make_user(role="superuser")
    api_key, raw = make_api_key()
    client.get("/api/v1/projects-tasks", headers={"x-api-key": raw})
    client.post("/api/v1/projects-tasks", headers={"x-api-key": raw})

    r = client.get(f"/api-keys/{api_key.id}/usage?limit=9999", headers=_h(superuser.email))
    assert r.status_code == 200
    body = r.json()
    assert body["limit"] == 500
    assert body["summary"]["total_requests"] == 2
    assert body["summary"]["requests_last_24h"] == 2
    assert body["summary"]["error_count"] == 1
    assert {log["response_status"] for log in body["logs"]} == {200, 405}

    assert client.get(f"/api-keys/{uuid.uuid4()}/usage", headers=_h(superuser.email)).status_code == 404
