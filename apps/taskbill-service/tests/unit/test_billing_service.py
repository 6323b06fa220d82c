import uuid
from datetime import UTC, date, datetime
from unittest.mock import patch

import pytest

from taskbill.db import models, schemas
from taskbill.services import billing_service
from taskbill.services.billing_service import BillingError, BillingNotFound


def _invoice(db_session, project, tasks, **fields):
    payload = schemas.InvoiceCreate(
        project_id=project.id,
        task_ids=[t.id for t in tasks],
        recipient_email="client@example.com",
        **fields,
    )
    return billing_service.create_invoice(db_session, payload=payload, created_by=None)


def test_generate_invoice_number_format(db_session):
    number = billing_service.generate_invoice_number(db_session, on=date(2025, 7, 4))
    assert number.startswith("INV-20250704-")
    assert len(number) == len("INV-20250704-000")


def test_generate_invoice_number_gives_up_when_exhausted(db_session, make_project):
    project = make_project()
    db_session.add(models.Invoice(project_id=project.id, invoice_number="INV-20250704-007", recipient_email="a@b.c"))
    db_session.commit()
    with patch("taskbill.services.billing_service.random.randint", return_value=7):
        with pytest.raises(BillingError):
            billing_service.generate_invoice_number(db_session, on=date(2025, 7, 4), attempts=3)


def test_price_tasks_hourly_and_fixed():
    hourly = models.Project(name="h", rate_type="hourly", hourly_rate=40)
    tasks = [models.Task(title="a", hours_worked=2.5), models.Task(title="b", hours_worked=1)]
    lines = billing_service.price_tasks(hourly, tasks)
    assert [line["amount"] for line in lines] == [100.0, 40.0]

    fixed = models.Project(name="f", rate_type="fixed", fixed_rate=900)
    lines = billing_service.price_tasks(fixed, tasks)
    assert [line["amount"] for line in lines] == [450.0, 450.0]
    assert billing_service.project_rate(fixed) == 900.0


def test_create_invoice_totals_and_task_status(db_session, make_project, make_task):
    project = make_project(hourly_rate=50)
    t1 = make_task(project, status="completed", hours_worked=2)
    t2 = make_task(project, status="completed", hours_worked=3)

    invoice = _invoice(db_session, project, [t1, t2], tax_amount=25, discount_amount=10)

    assert invoice.status == "draft"
    assert invoice.total_amount == 250.0
    assert invoice.final_amount == 265.0
    assert len(invoice.items) == 2
    db_session.refresh(t1)
    assert t1.invoice_status == "created"


def test_create_invoice_rejects_ineligible_tasks(db_session, make_project, make_task):
    project = make_project()
    open_task = make_task(project, status="in_progress")
    with pytest.raises(BillingError):
        _invoice(db_session, project, [open_task])

    other_project_task = make_task(make_project(), status="completed")
    with pytest.raises(BillingError):
        _invoice(db_session, project, [other_project_task])


def test_create_invoice_unknown_project(db_session, make_project, make_task):
    task = make_task(make_project(), status="completed")
    payload = schemas.InvoiceCreate(
        project_id=uuid.uuid4(), task_ids=[task.id], recipient_email="client@example.com"
    )
    with pytest.raises(BillingNotFound):
        billing_service.create_invoice(db_session, payload=payload, created_by=None)


def test_send_creates_receivables_and_marks_tasks(db_session, make_project, make_task):
    project = make_project(hourly_rate=100)
    task = make_task(project, status="completed", hours_worked=1.5)
    invoice = _invoice(db_session, project, [task])

    billing_service.mark_invoice_sent(db_session, invoice)

    assert invoice.status == "sent"
    assert invoice.sent_at is not None
    db_session.refresh(task)
    assert task.invoice_status == "invoiced"
    receivable = task.receivable
    assert receivable.status == "open"
    assert receivable.amount == 150.0
    assert receivable.hours_billed == 1.5
    assert receivable.rate_used == 100.0


def test_mark_sent_is_noop_for_non_draft(db_session, make_project, make_task):
    project = make_project()
    invoice = _invoice(db_session, project, [make_task(project, status="completed", hours_worked=1)])
    billing_service.transition_invoice(db_session, invoice, "sent")
    sent_at = invoice.sent_at
    billing_service.mark_invoice_sent(db_session, invoice)
    assert invoice.status == "sent"
    assert invoice.sent_at == sent_at


def test_invalid_transition_raises(db_session, make_project, make_task):
    project = make_project()
    invoice = _invoice(db_session, project, [make_task(project, status="completed", hours_worked=1)])
    with pytest.raises(BillingError):
        billing_service.transition_invoice(db_session, invoice, "paid")


def test_cancel_invoice_effects(db_session, make_project, make_task):
    project = make_project(hourly_rate=80)
    task = make_task(project, status="completed", hours_worked=2, description="Work")
    invoice = _invoice(db_session, project, [task])
    billing_service.mark_invoice_sent(db_session, invoice)

    billing_service.cancel_invoice(db_session, invoice, reason="Client withdrew")

    assert invoice.status == "cancelled"
    assert invoice.total_amount == 0
    assert invoice.final_amount == 0
    assert "CANCELLED: Client withdrew" in invoice.notes
    assert "Original total amount: $160.00" in invoice.notes
    db_session.refresh(task)
    assert task.invoice_status == "cancelled"
    assert task.description.endswith(billing_service.CANCELLED_TASK_NOTE)
    assert task.receivable.status == "cancelled"
    assert "Original amount: $160.00" in task.receivable.notes

    with pytest.raises(BillingError):
        billing_service.transition_invoice(db_session, invoice, "sent")


def test_cancel_draft_uses_default_reason(db_session, make_project, make_task):
    project = make_project()
    invoice = _invoice(db_session, project, [make_task(project, status="completed", hours_worked=1)])
    billing_service.cancel_invoice(db_session, invoice)
    assert invoice.notes.startswith("CANCELLED: No reason provided")


def test_delete_only_drafts(db_session, make_project, make_task):
    project = make_project()
    task = make_task(project, status="completed", hours_worked=1)
    invoice = _invoice(db_session, project, [task])
    invoice_id = invoice.id

    billing_service.delete_invoice(db_session, invoice)
    assert db_session.get(models.Invoice, invoice_id) is None
    db_session.refresh(task)
    assert task.invoice_status == "not_invoiced"

    invoice = _invoice(db_session, project, [task])
    billing_service.mark_invoice_sent(db_session, invoice)
    with pytest.raises(BillingError):
        billing_service.delete_invoice(db_session, invoice)


def test_update_invoice_recalculates(db_session, make_project, make_task):
    project = make_project(hourly_rate=10)
    invoice = _invoice(db_session, project, [make_task(project, status="completed", hours_worked=10)])
    invoice = billing_service.update_invoice(
        db_session, invoice, payload=schemas.InvoiceUpdate(tax_amount=5, discount_amount=20)
    )
    assert invoice.final_amount == 85.0

    invoice = billing_service.update_invoice(db_session, invoice, payload=schemas.InvoiceUpdate(status="sent"))
    assert invoice.status == "sent"


def test_partial_then_full_payment_closes_invoice(db_session, make_project, make_task):
    project = make_project(hourly_rate=100, inr_conversion_factor=0.5)
    t1 = make_task(project, status="completed", hours_worked=1)
    t2 = make_task(project, status="completed", hours_worked=2)
    invoice = _invoice(db_session, project, [t1, t2])
    billing_service.mark_invoice_sent(db_session, invoice)
    db_session.refresh(t1)
    db_session.refresh(t2)
    r1, r2 = t1.receivable, t2.receivable

    record = billing_service.record_payment(db_session, r1, amount=40, exchange_rate=80)
    assert record.amount_inr == 1600.0
    assert r1.status == "open"
    assert r1.remaining_amount == 60.0

    billing_service.record_payment(db_session, r1, amount=60, exchange_rate=80)
    assert r1.status == "paid"
    db_session.refresh(invoice)
    assert invoice.status == "sent"

    billing_service.record_payment(db_session, r2, amount=200, exchange_rate=82)
    db_session.refresh(invoice)
    assert invoice.status == "paid"
    assert invoice.paid_at is not None


def test_payment_guards(db_session, make_project, make_task):
    project = make_project()
    task = make_task(project, status="completed", hours_worked=1)
    invoice = _invoice(db_session, project, [task])
    billing_service.mark_invoice_sent(db_session, invoice)
    db_session.refresh(task)
    receivable = task.receivable

    with pytest.raises(BillingError):
        billing_service.record_payment(db_session, receivable, amount=0, exchange_rate=80)

    billing_service.cancel_invoice(db_session, invoice)
    db_session.refresh(receivable)
    with pytest.raises(BillingError):
        billing_service.record_payment(db_session, receivable, amount=10, exchange_rate=80)


def test_paid_transition_closes_open_receivables(db_session, make_project, make_task):
    project = make_project()
    task = make_task(project, status="completed", hours_worked=1)
    invoice = _invoice(db_session, project, [task])
    billing_service.mark_invoice_sent(db_session, invoice)

    now = datetime(2025, 5, 1, tzinfo=UTC)
    billing_service.transition_invoice(db_session, invoice, "paid", now=now)

    db_session.refresh(task)
    assert task.invoice_status == "paid"
    assert task.receivable.status == "paid"


def test_revert_to_draft_withdraws_receivables(db_session, make_project, make_task):
    project = make_project(hourly_rate=50)
    task = make_task(project, status="completed", hours_worked=2)
    task_id = task.id
    invoice = _invoice(db_session, project, [task])
    billing_service.mark_invoice_sent(db_session, invoice)
    assert db_session.query(models.Receivable).filter_by(task_id=task_id).count() == 1

    billing_service.transition_invoice(db_session, invoice, "draft")
    assert invoice.status == "draft"
    assert invoice.sent_at is None
    assert db_session.query(models.Receivable).filter_by(task_id=task_id).count() == 0
    db_session.refresh(task)
    assert task.invoice_status == "created"

    billing_service.delete_invoice(db_session, invoice)
    db_session.refresh(task)
    assert task.invoice_status == "not_invoiced"
    assert db_session.query(models.Receivable).count() == 0


def test_revert_to_draft_refused_after_payment(db_session, make_project, make_task):
    project = make_project(hourly_rate=50)
    task = make_task(project, status="completed", hours_worked=2)
    invoice = _invoice(db_session, project, [task])
    billing_service.mark_invoice_sent(db_session, invoice)
    db_session.refresh(task)
    billing_service.record_payment(db_session, task.receivable, amount=10, exchange_rate=80)

    with pytest.raises(BillingError):
        billing_service.transition_invoice(db_session, invoice, "draft")
    db_session.rollback()
    db_session.refresh(invoice)
    assert invoice.status == "sent"
    assert db_session.query(models.RevenueRecord).count() == 1
