from __future__ import annotations

import runpy
from pathlib import Path
from unittest.mock import AsyncMock, patch

from taskbill.db import database, models
from taskbill.utils.api_key_crypto import hash_key

SCRIPTS_DIR = Path(__file__).resolve().parents[2] / "scripts"
CREATE_KEY = runpy.run_path(str(SCRIPTS_DIR / "create_api_key.py"))
CHECK_SMTP = runpy.run_path(str(SCRIPTS_DIR / "check_smtp.py"))


def _raw_key_from(output: str) -> str:
    (line,) = [line for line in output.splitlines() if line.startswith("Key (shown once): ")]
    return line.split(": ", 1)[1]


def test_create_key_prints_raw_key_once(capsys, make_user):
    owner = make_user(email="owner@example.com")
    code = CREATE_KEY["main"](
        ["--name", "Reporting", "--permissions", "read:projects, read:tasks", "--owner-email", "Owner@Example.com"]
    )
    assert code == 0
    raw = _raw_key_from(capsys.readouterr().out)
    assert raw.startswith("tmp_")

    session = database.SessionLocal()
    try:
        (stored,) = session.query(models.ApiKey).all()
        assert stored.key_hash == hash_key(raw)
        assert stored.created_by == owner.id
        assert stored.permissions == ["read:projects", "read:tasks"]
        assert session.query(models.ApiRateLimit).filter_by(api_key_id=stored.id).count() == 1
    finally:
        session.close()


def test_create_key_rejects_unknown_permission(capsys):
    code = CREATE_KEY["create_key"](name="Bad", permissions=["bogus"], rate_limit=60)
    assert code == 2
    assert "Invalid key settings" in capsys.readouterr().err


def test_create_key_requires_existing_owner(capsys):
    code = CREATE_KEY["create_key"](
        name="Orphan", permissions=["read:projects"], rate_limit=60, owner_email="nobody@example.com"
    )
    assert code == 1
    assert "No user with email" in capsys.readouterr().err


def test_check_smtp_reports_missing_settings(capsys):
    assert CHECK_SMTP["main"]([]) == 1
    assert "SMTP configuration is incomplete" in capsys.readouterr().out


def test_check_smtp_sends_test_message(capsys, monkeypatch):
    monkeypatch.setenv("SMTP_HOSTNAME", "smtp.example.com")
    monkeypatch.setenv("SMTP_USERNAME", "billing@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    with patch("aiosmtplib.send", new=AsyncMock(return_value=({}, "OK"))) as send:
        code = CHECK_SMTP["main"](["--send-to", "me@example.com"])
    assert code == 0
    assert send.await_args.args[0]["To"] == "me@example.com"
    out = capsys.readouterr().out
    assert "smtp.example.com:587" in out
    assert "Test email sent to me@example.com" in out
