"""
Function-style endpoints called directly by the web client.

`POST /functions/send-invoice-email` emails an invoice and marks a draft
as sent. It is exempt from the sign-in write guard and answers with
`{error: ...}` bodies and CORS headers instead of FastAPI's `detail`.
"""
import json
import logging
import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import PlainTextResponse

from taskbill.db.database import get_db
from taskbill.db.repositories import invoices as invoice_repo
from taskbill.services.api_access import CORS_HEADERS, json_response
from taskbill.services.billing_service import BillingError
from taskbill.services.email_service import EmailSendError
from taskbill.services.invoice_email_service import deliver_invoice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["functions"])


def _error(status_code: int, message: str, **extra):
    return json_response({"error": message, **extra}, status_code)


@router.options("/send-invoice-email")
def send_invoice_email_preflight():
    return PlainTextResponse("ok", headers=dict(CORS_HEADERS))


@router.post("/send-invoice-email")
async def send_invoice_email(request: Request, db: Session = Depends(get_db)):
    try:
        try:
            body = json.loads(await request.body() or b"")
        except ValueError:
            body = None
        invoice_id = body.get("invoiceId") if isinstance(body, dict) else None
        if not invoice_id:
            return _error(400, "Invoice ID is required")

        try:
            invoice_uuid = uuid.UUID(str(invoice_id))
        except ValueError:
            return _error(404, "Invoice not found")

        try:
            invoice = invoice_repo.get_invoice(db, invoice_id=invoice_uuid)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to fetch invoice %s: %s", invoice_uuid, e)
            return _error(500, "Failed to fetch invoice")
        if invoice is None:
            return _error(404, "Invoice not found")

        try:
            delivery = await deliver_invoice(db, invoice)
        except EmailSendError as e:
            logger.error("Failed to send invoice %s: %s", invoice.invoice_number, e, exc_info=True)
            return _error(500, "Failed to send email", details=str(e))
        except BillingError as e:
            db.rollback()
            return _error(409, str(e))
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to update invoice %s status: %s", invoice.invoice_number, e)
            return _error(500, "Failed to update invoice status")

        return json_response({"success": True, "message": delivery.message})
    except Exception as e:
        db.rollback()
        logger.exception("send-invoice-email failed")
        return _error(500, "Internal server error", details=str(e))
