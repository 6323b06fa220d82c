import uuid
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest
from sqlalchemy.exc import OperationalError

from taskbill.db import models, schemas
from taskbill.services import billing_service
from taskbill.services.invoice_email_service import MESSAGE_SENT, MESSAGE_SKIPPED_DEV, MESSAGE_SKIPPED_SMTP

URL = "/functions/send-invoice-email"


@pytest.fixture
def draft_invoice(db_session, make_project, make_task):
    project = make_project(name="Acme", hourly_rate=90)
    task = make_task(project, status="completed", hours_worked=2)
    payload = schemas.InvoiceCreate(
        project_id=project.id, task_ids=[task.id], recipient_email="ap@acme.test", recipient_name="Acme AP"
    )
    return billing_service.create_invoice(db_session, payload=payload, created_by=None)


@pytest.fixture
def smtp_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOSTNAME", "smtp.example.com")
    monkeypatch.setenv("SMTP_USERNAME", "billing@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")


def _status(db_session, invoice_id):
    db_session.expire_all()
    return db_session.get(models.Invoice, invoice_id).status


def test_preflight(client):
    r = client.options(URL)
    assert r.status_code == 200
    assert r.text == "ok"
    assert r.headers["access-control-allow-origin"] == "*"


def test_requires_invoice_id(client):
    r = client.post(URL, json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Invoice ID is required"}

    r = client.post(URL, content=b"not json")
    assert r.status_code == 400


def test_unknown_invoice(client):
    assert client.post(URL, json={"invoiceId": str(uuid.uuid4())}).status_code == 404
    assert client.post(URL, json={"invoiceId": "INV-1"}).status_code == 404


def test_skips_email_when_smtp_missing(client, db_session, draft_invoice):
    r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": MESSAGE_SKIPPED_SMTP}
    assert _status(db_session, draft_invoice.id) == "sent"


def test_dev_flag_skips_email(client, db_session, monkeypatch, smtp_env, draft_invoice):
    monkeypatch.setenv("ALLOW_MARK_SENT_WITHOUT_EMAIL", "true")
    with patch("aiosmtplib.send", new=AsyncMock()) as send:
        r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.json()["message"] == MESSAGE_SKIPPED_DEV
    send.assert_not_awaited()
    assert _status(db_session, draft_invoice.id) == "sent"


def test_sends_email_and_marks_sent(client, db_session, smtp_env, draft_invoice):
    with patch("aiosmtplib.send", new=AsyncMock(return_value=({}, "OK"))) as send:
        r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.status_code == 200, r.text
    assert r.json()["message"] == MESSAGE_SENT
    message = send.await_args.args[0]
    assert message["To"] == "ap@acme.test"
    assert message["Subject"] == f"Invoice {draft_invoice.invoice_number} from Acme"
    assert send.await_args.kwargs["hostname"] == "smtp.example.com"
    assert _status(db_session, draft_invoice.id) == "sent"


def test_resending_sent_invoice_keeps_status(client, db_session, smtp_env, draft_invoice):
    billing_service.mark_invoice_sent(db_session, draft_invoice)
    with patch("aiosmtplib.send", new=AsyncMock(return_value=({}, "OK"))):
        r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.status_code == 200
    assert _status(db_session, draft_invoice.id) == "sent"


def test_smtp_failure_returns_500_and_leaves_draft(client, db_session, smtp_env, draft_invoice):
    failure = AsyncMock(side_effect=aiosmtplib.SMTPAuthenticationError(535, "bad credentials"))
    with patch("aiosmtplib.send", new=failure):
        r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to send email"
    assert "bad credentials" in r.json()["details"]
    assert _status(db_session, draft_invoice.id) == "draft"


def test_cancelled_invoice_conflicts(client, db_session, draft_invoice):
    billing_service.cancel_invoice(db_session, draft_invoice)
    r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.status_code == 409


def test_fetch_failure(client, monkeypatch, draft_invoice):
    from taskbill.api import functions

    def _boom(db, *, invoice_id):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(functions.invoice_repo, "get_invoice", _boom)
    r = client.post(URL, json={"invoiceId": str(draft_invoice.id)})
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to fetch invoice"
