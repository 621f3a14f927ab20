from datetime import timedelta

import pytest

from academy.models import (
    EnrollmentStatus,
    InvoiceStatus,
    Notification,
    PaymentStatus,
    WebhookEvent,
)
from academy.services.checkout import create_checkout
from academy.utils.time import utcnow


@pytest.fixture
def pending_checkout(db, factory, gateway):
    section = factory.section(current_enrollments=1)
    enrollment = factory.enrollment(section=section)
    result = create_checkout(db, enrollment.id, gateway)
    return enrollment, result["invoice"], result["payment"]


def webhook_body(payment, **overrides):
    body = {
        "project": "academy-test",
        "order_id": payment.order_id,
        "amount": payment.amount,
        "status": "completed",
        "payment_method": "qris",
        "completed_at": "2026-10-18T10:00:00+07:00",
    }
    body.update(overrides)
    return body


def test_completed_webhook_marks_everything_paid(client, db, pending_checkout):
    enrollment, invoice, payment = pending_checkout

    response = client.post("/api/payments/webhook", json=webhook_body(payment))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Webhook processed successfully"}
    db.refresh(payment)
    db.refresh(enrollment)
    db.refresh(invoice)
    assert payment.status == PaymentStatus.PAID
    # completed_at is normalised to naive UTC
    assert payment.paid_at.hour == 3
    assert enrollment.status == EnrollmentStatus.PAID
    assert invoice.status == InvoiceStatus.PAID

    notification = db.query(Notification).filter(
        Notification.user_id == enrollment.student.user_id
    ).one()
    assert notification.title == "Payment Confirmed"
    assert db.query(WebhookEvent).count() == 1


def test_amount_mismatch_leaves_state_untouched(client, db, pending_checkout):
    enrollment, invoice, payment = pending_checkout

    response = client.post(
        "/api/payments/webhook", json=webhook_body(payment, amount=payment.amount - 1)
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Amount mismatch"}
    db.refresh(payment)
    db.refresh(enrollment)
    assert payment.status == PaymentStatus.PENDING
    assert enrollment.status == EnrollmentStatus.PENDING
    assert db.query(WebhookEvent).count() == 0


def test_wrong_project_is_rejected(client, pending_checkout):
    _, _, payment = pending_checkout
    response = client.post(
        "/api/payments/webhook", json=webhook_body(payment, project="someone-else")
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid webhook payload"}


def test_unknown_order_is_not_found(client, pending_checkout):
    _, _, payment = pending_checkout
    response = client.post(
        "/api/payments/webhook", json=webhook_body(payment, order_id="INV-19990101-NOPE")
    )
    assert response.status_code == 404


@pytest.mark.parametrize("gateway_status", ["expired", "failed", "refunded"])
def test_unmapped_status_is_rejected_without_state_change(client, db, pending_checkout, gateway_status):
    enrollment, _, payment = pending_checkout

    response = client.post(
        "/api/payments/webhook", json=webhook_body(payment, status=gateway_status)
    )

    assert response.status_code == 400
    assert response.json() == {"error": f"Unmapped payment status: {gateway_status}"}
    db.refresh(payment)
    assert payment.status == PaymentStatus.PENDING


def test_duplicate_delivery_is_acknowledged_once(client, db, pending_checkout):
    enrollment, _, payment = pending_checkout

    first = client.post("/api/payments/webhook", json=webhook_body(payment))
    second = client.post("/api/payments/webhook", json=webhook_body(payment))

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["message"] == "Webhook already processed"
    assert db.query(WebhookEvent).count() == 1
    assert db.query(Notification).count() == 1


def test_settled_payment_never_moves_backward(client, db, pending_checkout):
    _, _, payment = pending_checkout
    client.post("/api/payments/webhook", json=webhook_body(payment))

    response = client.post("/api/payments/webhook", json=webhook_body(payment, status="pending"))

    assert response.status_code == 409
    db.refresh(payment)
    assert payment.status == PaymentStatus.PAID


def test_expired_payment_cannot_be_completed(client, db, pending_checkout):
    _, _, payment = pending_checkout
    payment.status = PaymentStatus.EXPIRED
    db.commit()

    response = client.post("/api/payments/webhook", json=webhook_body(payment))

    assert response.status_code == 409
    db.refresh(payment)
    assert payment.status == PaymentStatus.EXPIRED


def test_renewal_payment_extends_active_enrollment(client, db, factory):
    now = utcnow()
    section = factory.section(current_enrollments=1)
    enrollment = factory.enrollment(
        section=section,
        status=EnrollmentStatus.ACTIVE,
        start_date=now - timedelta(days=28),
        expiry_date=now + timedelta(days=2),
        grace_expiry_date=now + timedelta(days=9),
        meetings_attended=6,
    )
    period_start = now + timedelta(days=2)
    invoice = factory.invoice(
        enrollment,
        period_start=period_start,
        period_end=period_start + timedelta(days=30),
    )
    payment = factory.payment(enrollment, invoice)

    response = client.post("/api/payments/webhook", json=webhook_body(payment))

    assert response.status_code == 200
    db.refresh(enrollment)
    assert enrollment.status == EnrollmentStatus.ACTIVE
    assert enrollment.expiry_date == period_start + timedelta(days=30)
    assert enrollment.grace_expiry_date == period_start + timedelta(days=37)
    assert enrollment.meetings_attended == 0


def test_renewal_payment_reactivates_expired_enrollment(client, db, factory):
    now = utcnow()
    section = factory.section(current_enrollments=1)
    enrollment = factory.enrollment(
        section=section,
        status=EnrollmentStatus.EXPIRED,
        expiry_date=now - timedelta(days=1),
        grace_expiry_date=now + timedelta(days=6),
    )
    invoice = factory.invoice(enrollment, period_start=now - timedelta(days=1))
    payment = factory.payment(enrollment, invoice)

    response = client.post("/api/payments/webhook", json=webhook_body(payment))

    assert response.status_code == 200
    db.refresh(enrollment)
    assert enrollment.status == EnrollmentStatus.ACTIVE


def test_webhook_rejects_get(client):
    response = client.get("/api/payments/webhook")
    assert response.status_code == 405


def test_missing_fields_fail_validation(client):
    response = client.post("/api/payments/webhook", json={"project": "academy-test"})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation error"
