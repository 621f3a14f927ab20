import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from academy.core.config import settings
from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.models.finance import Invoice, InvoiceStatus, Payment, PaymentStatus
from academy.models.programs import ClassSection
from academy.models.users import Student, User, UserRole
from academy.services import invoices
from academy.services.exceptions import BusinessRuleError, NotFoundError
from academy.services.gateway import PaymentGateway
from academy.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def load_enrollment(db: Session, enrollment_id) -> Enrollment:
    enrollment = (
        db.query(Enrollment)
        .options(
            joinedload(Enrollment.student).joinedload(Student.user),
            joinedload(Enrollment.section).joinedload(ClassSection.template),
        )
        .filter(Enrollment.id == enrollment_id)
        .first()
    )
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    return enrollment


def ensure_owner(enrollment: Enrollment, user: Optional[User]) -> None:
    """Students only see their own enrollments; admins see all."""
    if user is None or user.role == UserRole.ADMIN:
        return
    if enrollment.student.user_id != user.id:
        raise NotFoundError("Enrollment not found")


def open_checkout(
    db: Session,
    enrollment: Enrollment,
    invoice: Invoice,
    gateway: PaymentGateway,
    payment: Optional[Payment] = None,
) -> Payment:
    """Request a gateway session for ``invoice`` and attach it to a payment.

    Reuses ``payment`` when given, otherwise creates a new one. Nothing is
    committed here.
    """
    session = gateway.create_transaction(
        order_id=invoice.invoice_number,
        amount=invoice.total_amount,
        expiry_minutes=settings.PAYMENT_EXPIRY_HOURS * 60,
    )

    if payment is None:
        payment = Payment(enrollment_id=enrollment.id, status=PaymentStatus.PENDING)
        db.add(payment)

    payment.amount = invoice.total_amount
    payment.order_id = invoice.invoice_number
    payment.session_token = session.token
    payment.redirect_url = session.redirect_url
    payment.expired_at = session.expires_at
    payment.payment_method = session.payment_method
    db.flush()

    invoice.payment_id = payment.id
    return payment


def create_checkout(
    db: Session,
    enrollment_id,
    gateway: PaymentGateway,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()
    enrollment = load_enrollment(db, enrollment_id)
    ensure_owner(enrollment, user)

    if enrollment.status != EnrollmentStatus.PENDING:
        raise BusinessRuleError("Enrollment is not in PENDING status")
    if enrollment.section is None:
        raise BusinessRuleError("Enrollment has no section assigned")

    invoice = (
        db.query(Invoice)
        .filter(
            Invoice.enrollment_id == enrollment.id,
            Invoice.status == InvoiceStatus.UNPAID,
        )
        .order_by(Invoice.created_at.desc())
        .first()
    )
    if invoice is None:
        invoice = invoices.issue_invoice(db, enrollment, period_start=now, now=now)

    payment = enrollment.current_payment
    if payment is not None and payment.status != PaymentStatus.PENDING:
        # Settled or dead payments are never reopened
        payment = None

    payment = open_checkout(db, enrollment, invoice, gateway, payment=payment)
    db.commit()
    db.refresh(invoice)
    db.refresh(payment)

    logger.info(
        "Checkout opened for enrollment %s: invoice %s, amount %s",
        enrollment.id, invoice.invoice_number, invoice.total_amount,
    )
    return {
        "success": True,
        "invoice": invoice,
        "payment": payment,
    }


def invoice_enrollment(
    db: Session,
    enrollment_id,
    gateway: PaymentGateway,
    amount: int,
    due_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    """Bill an enrollment by hand (renewals, adjustments) and open its checkout.

    The new period starts where the current one ends, or now when it has
    already lapsed.
    """
    now = now or utcnow()
    enrollment = load_enrollment(db, enrollment_id)
    if enrollment.status in (EnrollmentStatus.CANCELLED, EnrollmentStatus.SLOT_RELEASED):
        raise BusinessRuleError(f"Cannot invoice a {enrollment.status.value} enrollment")

    open_invoice = (
        db.query(Invoice.id)
        .filter(
            Invoice.enrollment_id == enrollment.id,
            Invoice.status == InvoiceStatus.UNPAID,
        )
        .first()
    )
    if open_invoice:
        raise BusinessRuleError("Enrollment already has an unpaid invoice")

    period_start = now
    if enrollment.expiry_date is not None and enrollment.expiry_date > now:
        period_start = enrollment.expiry_date

    invoice = invoices.issue_invoice(
        db,
        enrollment,
        period_start=period_start,
        notes=notes,
        now=now,
        amount=amount,
        due_date=to_naive_utc(due_date) if due_date else None,
    )
    open_checkout(db, enrollment, invoice, gateway)
    db.commit()
    db.refresh(invoice)

    logger.info(
        "Issued invoice %s for enrollment %s by hand", invoice.invoice_number, enrollment.id
    )
    return invoice
