import pytest

from taskbill.utils import runtime


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "service": "taskbill-service"}


def test_build_info(client, monkeypatch):
    monkeypatch.setenv("BUILD_SHA", "abc123")
    monkeypatch.setenv("IMAGE_TAG", "v2")
    monkeypatch.delenv("BUILD_TIMESTAMP", raising=False)
    monkeypatch.delenv("VERSION", raising=False)
    body = client.get("/build-info").json()
    assert body["build_sha"] == "abc123"
    assert body["image_tag"] == "v2"
    assert body["build_timestamp"] is None
    assert body["version"] == "unknown"
    assert body["service_name"] == "taskbill-service"


def test_writes_require_sign_in(client):
    r = client.post("/projects", json={"name": "Anon"})
    assert r.status_code == 401
    assert r.json() == {"detail": "Sign in to perform changes."}


def test_api_key_header_passes_write_guard(client):
    # The guard lets it through; the route itself still needs a user identity
    r = client.post("/projects", json={"name": "Keyed"}, headers={"x-api-key": "tmp_whatever"})
    assert r.status_code == 401
    assert r.json() == {"detail": "Authentication required"}


def test_reads_do_not_need_sign_in_guard(client):
    r = client.get("/projects")
    assert r.json() == {"detail": "Authentication required"}


def test_dev_mode_allows_anonymous_writes(client, monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
    r = client.post("/projects", json={"name": "Local"})
    assert r.status_code == 201
    assert r.json()["name"] == "Local"


def test_dev_mode_refuses_remote_base_url(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "https://billing.example.com")
    with pytest.raises(RuntimeError):
        runtime.dev_mode_active()

    monkeypatch.setenv("DEV_MODE_ALLOWED_HOSTS", "billing.example.com")
    assert runtime.dev_mode_active() is True


def test_dev_mode_without_base_url(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    # pytest sets PYTEST_CURRENT_TEST, which counts as local execution
    assert runtime.dev_mode_active() is True
    monkeypatch.delenv("PYTEST_CURRENT_TEST")
    with pytest.raises(RuntimeError):
        runtime.dev_mode_active()
    monkeypatch.setenv("ALLOW_DEV_MODE", "true")
    assert runtime.dev_mode_active() is True


def test_dev_mode_off_by_default():
    assert runtime.dev_mode_active() is False


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("FLAG", "TRUE")
    monkeypatch.setenv("NUM", "12")
    monkeypatch.setenv("BAD_NUM", "twelve")
    monkeypatch.setenv("RATE", "0.25")
    monkeypatch.setenv("LIST", " 'a@x.com', \"b@x.com\",, ")
    assert runtime.env_flag("FLAG") is True
    assert runtime.env_flag("MISSING_FLAG", default=True) is True
    assert runtime.env_int("NUM", 5) == 12
    assert runtime.env_int("BAD_NUM", 5) == 5
    assert runtime.env_float("RATE", 1.0) == 0.25
    assert runtime.env_list("LIST") == ["a@x.com", "b@x.com"]
    assert runtime.env_list("MISSING_LIST") == []
