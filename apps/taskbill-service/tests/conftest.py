import uuid
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from taskbill.api.main import app
from taskbill.db import database, models
from taskbill.services.email_service import reset_email_service
from taskbill.services.exchange_rate_service import (
    ExchangeRateError,
    ExchangeRateService,
    reset_exchange_rate_service,
)
from taskbill.utils import api_key_crypto

# Environment that changes identity, mail or billing behaviour; cleared per test.
_ISOLATED_ENV = [
    "DEV_MODE",
    "ALLOW_DEV_MODE",
    "APP_BASE_URL",
    "ADMIN_EMAILS",
    "SUPERUSER_EMAILS",
    "ALLOW_MARK_SENT_WITHOUT_EMAIL",
    "SMTP_HOSTNAME",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SMTP_PORT",
    "SMTP_FROM",
    "SMTP_USE_TLS",
    "SMTP_USE_SSL",
    "EXCHANGE_RATE_API_KEY",
    "DEFAULT_USD_INR_RATE",
    "TAX_RATE",
]


def _offline_fetch(self):
    raise ExchangeRateError("network disabled in tests")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(ExchangeRateService, "_fetch", _offline_fetch)
    reset_exchange_rate_service()
    reset_email_service()
    yield
    reset_exchange_rate_service()
    reset_email_service()


@pytest.fixture(autouse=True)
def _clean_tables():
    database.ensure_sqlite_schema()
    yield
    with database.engine.begin() as conn:
        for table in reversed(models.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db_session():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    def _make(email: str = None, role: str = "user") -> models.User:
        email = email or f"user_{uuid.uuid4().hex[:8]}@example.com"
        user = models.User(email=email, full_name=email.split("@")[0], role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_project(db_session):
    def _make(**fields) -> models.Project:
        fields.setdefault("name", f"Project {uuid.uuid4().hex[:6]}")
        project = models.Project(**fields)
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def make_task(db_session):
    def _make(project: models.Project, **fields) -> models.Task:
        fields.setdefault("title", f"Task {uuid.uuid4().hex[:6]}")
        if fields.get("status") == "completed":
            fields.setdefault("progress_percentage", 100)
            fields.setdefault("completed_at", datetime.now(UTC))
            fields.setdefault("completed_on", datetime.now(UTC).date())
        task = models.Task(project_id=project.id, **fields)
        db_session.add(task)
        db_session.commit()
        db_session.refresh(task)
        return task

    return _make


@pytest.fixture
def make_api_key(db_session):
    """Insert a key directly and return (model, raw_key)."""

    def _make(permissions=("read:projects", "read:tasks"), rate_limit=None, **fields):
        raw, key_hash, prefix = api_key_crypto.generate_key()
        api_key = models.ApiKey(
            name=fields.pop("name", "test key"),
            key_hash=key_hash,
            key_prefix=prefix,
            permissions=list(permissions),
            **fields,
        )
        if rate_limit is not None:
            api_key.rate_limit = rate_limit
            api_key.rate_limits.append(models.ApiRateLimit(requests_per_minute=rate_limit))
        db_session.add(api_key)
        db_session.commit()
        db_session.refresh(api_key)
        return api_key, raw

    return _make
