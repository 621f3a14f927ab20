import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.models.enrollment import Enrollment
from academy.models.finance import Invoice, InvoiceStatus, PaymentStatus
from academy.services.exceptions import BusinessRuleError, NotFoundError
from academy.utils.time import utcnow

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """INV-YYYYMMDD-XXXX with a random alphanumeric suffix."""
    now = now or utcnow()
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"INV-{now.strftime('%Y%m%d')}-{suffix}"


def _unique_invoice_number(db: Session, now: datetime) -> str:
    for _ in range(10):
        number = generate_invoice_number(now)
        exists = db.query(Invoice.id).filter(Invoice.invoice_number == number).first()
        if not exists:
            return number
    raise BusinessRuleError("Could not allocate a unique invoice number")


def compute_total(amount: int, tax: int, discount: int) -> int:
    return amount + tax - discount


def issue_invoice(
    db: Session,
    enrollment: Enrollment,
    period_start: datetime,
    period_end: Optional[datetime] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    amount: Optional[int] = None,
    due_date: Optional[datetime] = None,
) -> Invoice:
    """Create an UNPAID invoice snapshotting the student and program as they are now.

    ``amount`` defaults to the program's monthly price.
    """
    if enrollment.section is None:
        raise BusinessRuleError("Enrollment has no section assigned")

    now = now or utcnow()
    section = enrollment.section
    user = enrollment.student.user
    price = amount if amount is not None else section.template.price_per_month

    invoice = Invoice(
        invoice_number=_unique_invoice_number(db, now),
        enrollment_id=enrollment.id,
        student_name=user.name,
        student_email=user.email,
        student_phone=user.phone,
        program_name=section.template.name,
        section_label=section.section_label,
        period_start=period_start,
        period_end=period_end or period_start + timedelta(days=settings.SUBSCRIPTION_PERIOD_DAYS),
        amount=price,
        tax=0,
        discount=0,
        total_amount=compute_total(price, 0, 0),
        due_date=due_date or now + timedelta(hours=settings.PAYMENT_EXPIRY_HOURS),
        status=InvoiceStatus.UNPAID,
        notes=notes,
        created_at=now,
    )
    db.add(invoice)
    db.flush()
    return invoice


def get_invoice(db: Session, invoice_id) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def update_invoice(db: Session, invoice_id, changes: dict) -> Invoice:
    invoice = get_invoice(db, invoice_id)

    if "status" in changes and changes["status"] is not None:
        new_status = InvoiceStatus(changes["status"])
        if invoice.status == InvoiceStatus.PAID and new_status != InvoiceStatus.PAID:
            raise BusinessRuleError("Cannot change the status of a paid invoice")
        invoice.status = new_status
    if "notes" in changes:
        invoice.notes = changes["notes"]
    if "due_date" in changes and changes["due_date"] is not None:
        invoice.due_date = changes["due_date"]
    if "discount" in changes and changes["discount"] is not None:
        if invoice.status == InvoiceStatus.PAID:
            raise BusinessRuleError("Cannot discount a paid invoice")
        discount = changes["discount"]
        if discount < 0 or discount > invoice.amount + invoice.tax:
            raise BusinessRuleError("Discount must be between 0 and the invoice amount")
        invoice.discount = discount
        # An open checkout keeps its old amount until checkout is requested again
        invoice.total_amount = compute_total(invoice.amount, invoice.tax, discount)

    db.commit()
    db.refresh(invoice)
    return invoice


def cancel_invoice(db: Session, invoice_id) -> Invoice:
    invoice = get_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.PAID:
        raise BusinessRuleError("Cannot cancel paid invoice")

    invoice.status = InvoiceStatus.CANCELLED
    if invoice.payment is not None and invoice.payment.status == PaymentStatus.PENDING:
        invoice.payment.status = PaymentStatus.FAILED

    db.commit()
    db.refresh(invoice)
    logger.info("Cancelled invoice %s", invoice.invoice_number)
    return invoice


def list_invoices(
    db: Session,
    status: Optional[InvoiceStatus] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Invoice], int]:
    query = db.query(Invoice)
    if status is not None:
        query = query.filter(Invoice.status == status)
    total = query.count()
    items = (
        query.order_by(Invoice.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total
