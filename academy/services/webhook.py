"""Gateway callback processing.

Order of checks: payload sanity, payment lookup, amount match, status
mapping, replay detection, forward-only status. Only after all of them pass
is anything written, and everything is written in a single commit.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy.models.communication import NotificationType
from academy.models.enrollment import EnrollmentStatus
from academy.models.finance import InvoiceStatus, Payment, PaymentStatus, WebhookEvent
from academy.schemas.finance import WebhookPayload
from academy.services import lifecycle
from academy.services.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
)
from academy.services.gateway import PaymentGateway, map_gateway_status
from academy.services.notifications import notify
from academy.utils.email import send_payment_confirmation_email
from academy.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def _confirm_enrollment(payment: Payment, now: datetime) -> None:
    enrollment = payment.enrollment
    invoice = payment.invoice

    if enrollment.status == EnrollmentStatus.PENDING:
        lifecycle.transition(enrollment, EnrollmentStatus.PAID)
        return

    if enrollment.status in (EnrollmentStatus.ACTIVE, EnrollmentStatus.EXPIRED):
        # Renewal: move the subscription onto the invoiced period
        if enrollment.status == EnrollmentStatus.EXPIRED:
            lifecycle.transition(enrollment, EnrollmentStatus.ACTIVE)
        if invoice is not None:
            lifecycle.set_period(enrollment, invoice.period_start, invoice.period_end)
        else:
            lifecycle.set_period(enrollment, max(enrollment.expiry_date or now, now))
        lifecycle.reset_meeting_quota(enrollment)
        return

    logger.warning(
        "Payment %s confirmed for enrollment %s in status %s; enrollment left unchanged",
        payment.id, enrollment.id, enrollment.status.value,
    )


def process_webhook(
    db: Session,
    payload: WebhookPayload,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()

    if not gateway.verify_callback(payload.project, payload.order_id, payload.amount):
        logger.error("Rejected webhook with invalid payload for order %s", payload.order_id)
        raise AuthenticationError("Invalid webhook payload")

    payment = db.query(Payment).filter(Payment.order_id == payload.order_id).first()
    if not payment:
        logger.error("Payment not found for order_id %s", payload.order_id)
        raise NotFoundError("Payment not found")

    if payment.amount != payload.amount:
        logger.error(
            "Amount mismatch for order %s: expected %s, received %s",
            payload.order_id, payment.amount, payload.amount,
        )
        raise BusinessRuleError("Amount mismatch")

    try:
        new_status = map_gateway_status(payload.status)
    except BusinessRuleError:
        logger.warning(
            "Unmapped gateway status %r for order %s, payment left %s",
            payload.status, payload.order_id, payment.status.value,
        )
        raise

    already = (
        db.query(WebhookEvent)
        .filter(
            WebhookEvent.order_id == payload.order_id,
            WebhookEvent.status == payload.status.lower(),
        )
        .first()
    )
    if already:
        logger.info("Duplicate webhook for order %s (%s) ignored", payload.order_id, payload.status)
        return {"success": True, "message": "Webhook already processed"}

    if payment.status != PaymentStatus.PENDING and payment.status != new_status:
        raise ConflictError(
            f"Payment is {payment.status.value} and can no longer change to {new_status.value}"
        )

    paid_now = new_status == PaymentStatus.PAID and payment.status != PaymentStatus.PAID
    payment.status = new_status
    payment.payment_method = payload.payment_method or payment.payment_method

    if paid_now:
        payment.paid_at = to_naive_utc(payload.completed_at) if payload.completed_at else now
        if payment.invoice is not None:
            payment.invoice.status = InvoiceStatus.PAID
        _confirm_enrollment(payment, now)

        enrollment = payment.enrollment
        class_name = enrollment.section.display_name if enrollment.section else "Program"
        notify(
            db,
            enrollment.student.user_id,
            title="Payment Confirmed",
            message=f'Your payment for "{class_name}" has been confirmed. Happy learning!',
            type=NotificationType.PAYMENT,
        )

    db.add(
        WebhookEvent(
            order_id=payload.order_id,
            status=payload.status.lower(),
            amount=payload.amount,
            payload=payload.model_dump(mode="json"),
            outcome=new_status.value,
        )
    )

    try:
        db.commit()
    except IntegrityError:
        # A concurrent delivery of the same callback won the race
        db.rollback()
        logger.info("Concurrent duplicate webhook for order %s ignored", payload.order_id)
        return {"success": True, "message": "Webhook already processed"}

    logger.info(
        "Webhook processed: order=%s gateway_status=%s payment_status=%s enrollment=%s",
        payload.order_id, payload.status, new_status.value, payment.enrollment_id,
    )

    if paid_now:
        enrollment = payment.enrollment
        user = enrollment.student.user
        try:
            send_payment_confirmation_email(
                email_to=user.email,
                user_name=user.name,
                class_name=enrollment.section.display_name if enrollment.section else "Program",
                amount=payment.amount,
                transaction_id=payload.order_id,
                paid_at=payment.paid_at,
            )
        except Exception:
            logger.exception("Failed to send payment confirmation email for %s", payload.order_id)

    return {"success": True, "message": "Webhook processed successfully"}
