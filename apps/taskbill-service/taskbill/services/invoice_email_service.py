"""
Invoice delivery: render the invoice email, send it, and mark the invoice sent.

When ALLOW_MARK_SENT_WITHOUT_EMAIL=true or SMTP is not configured, the invoice
is marked sent without any mail leaving the process.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from taskbill.db import models
from taskbill.services import billing_service
from taskbill.services.email_service import EmailService, get_email_service
from taskbill.utils.runtime import env_flag

logger = logging.getLogger(__name__)

MESSAGE_SENT = "Invoice email sent successfully"
MESSAGE_SKIPPED_DEV = "Invoice marked as sent (email delivery skipped in development mode)"
MESSAGE_SKIPPED_SMTP = "Invoice marked as sent (SMTP not configured - email delivery skipped)"


@dataclass
class InvoiceDelivery:
    invoice: models.Invoice
    emailed: bool
    message: str


def invoice_subject(invoice: models.Invoice) -> str:
    return f"Invoice {invoice.invoice_number} from {invoice.project_name}"


def build_invoice_context(invoice: models.Invoice) -> Dict[str, Any]:
    items = [
        {
            "description": item.task_title or item.description,
            "hours": item.hours_billed,
            "rate": item.rate,
            "amount": item.amount,
        }
        for item in invoice.items
    ]
    return {
        "invoice_number": invoice.invoice_number,
        "project_name": invoice.project_name,
        "recipient_name": invoice.recipient_name,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "status": invoice.status,
        "items": items,
        "subtotal": invoice.total_amount,
        "tax": invoice.tax_amount,
        "discount": invoice.discount_amount,
        "total": invoice.final_amount,
        "notes": invoice.notes,
    }


def render_invoice_email(invoice: models.Invoice, email_service: Optional[EmailService] = None):
    """Return (subject, html, text) for the invoice email."""
    service = email_service or get_email_service()
    html, text = service.render_template("invoice", build_invoice_context(invoice))
    return invoice_subject(invoice), html, text


async def deliver_invoice(
    db: Session,
    invoice: models.Invoice,
    *,
    email_service: Optional[EmailService] = None,
) -> InvoiceDelivery:
    """Email the invoice (or skip) and move a draft invoice to sent.

    EmailSendError from the mail service propagates; the invoice status is
    only changed after a successful send.
    """
    if invoice.status == "cancelled":
        raise billing_service.BillingError("Cancelled invoices cannot be sent")

    service = email_service or get_email_service()

    if env_flag("ALLOW_MARK_SENT_WITHOUT_EMAIL"):
        logger.info("Development mode: skipping email for invoice %s", invoice.invoice_number)
        billing_service.mark_invoice_sent(db, invoice)
        return InvoiceDelivery(invoice=invoice, emailed=False, message=MESSAGE_SKIPPED_DEV)

    if not service.config.is_configured():
        logger.warning(
            "SMTP not configured (missing: %s): marking invoice %s sent without email",
            ", ".join(service.config.missing()), invoice.invoice_number,
        )
        billing_service.mark_invoice_sent(db, invoice)
        return InvoiceDelivery(invoice=invoice, emailed=False, message=MESSAGE_SKIPPED_SMTP)

    subject, html, text = render_invoice_email(invoice, service)
    await service.send_email(
        to_email=invoice.recipient_email,
        subject=subject,
        html_content=html,
        text_content=text,
    )
    billing_service.mark_invoice_sent(db, invoice)
    logger.info("Invoice %s emailed to %s", invoice.invoice_number, invoice.recipient_email)
    return InvoiceDelivery(invoice=invoice, emailed=True, message=MESSAGE_SENT)
