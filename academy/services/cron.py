"""Periodic batch jobs for the enrollment lifecycle.

Each job scans for candidate ids, then handles every candidate in its own
transaction: the row is re-read under a row lock (``SKIP LOCKED`` where the
database supports it) and the selection predicate is checked again, so two
overlapping runs never process the same record. A failing record is rolled
back, logged and reported in ``errors``; the rest of the batch continues.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.models.communication import NotificationType
from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.models.finance import Invoice, InvoiceStatus, Payment, PaymentStatus
from academy.models.meetings import MeetingStatus, ScheduledMeeting
from academy.models.programs import ClassSection, WaitingList, WaitingListStatus
from academy.schemas.cron import CronResult
from academy.services import invoices, lifecycle
from academy.services.checkout import open_checkout
from academy.services.gateway import PaymentGateway
from academy.services.notifications import notify
from academy.services.sections import release_seat
from academy.utils.time import ceil_days, ceil_minutes, utcnow

logger = logging.getLogger(__name__)

SKIPPED = "skipped"


def _lock(db: Session, model, record_id, *criteria):
    return (
        db.query(model)
        .filter(model.id == record_id, *criteria)
        .with_for_update(skip_locked=True)
        .first()
    )


def _lock_section(db: Session, section_id) -> Optional[ClassSection]:
    if section_id is None:
        return None
    return db.query(ClassSection).filter(ClassSection.id == section_id).with_for_update().first()


def _run_batch(
    db: Session,
    task: str,
    ids: Iterable,
    handler: Callable,
    now: datetime,
) -> CronResult:
    ids = list(ids)
    result = CronResult(task=task, total=len(ids), timestamp=now)
    logger.info("[%s] found %s candidate(s)", task, len(ids))

    for record_id in ids:
        try:
            outcome = handler(record_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("[%s] error processing %s", task, record_id)
            result.errors.append(str(record_id))
            continue

        if outcome == SKIPPED:
            result.skipped += 1
        else:
            result.processed += 1

    result.success = True
    result.message = f"Processed {result.processed}/{result.total} ({task})"
    logger.info(
        "[%s] processed=%s skipped=%s errors=%s",
        task, result.processed, result.skipped, len(result.errors),
    )
    return result


def _expire_approved_waiting_list(db: Session, student_id, template_id=None) -> int:
    query = db.query(WaitingList).filter(
        WaitingList.student_id == student_id,
        WaitingList.status == WaitingListStatus.APPROVED,
    )
    if template_id is not None:
        query = query.filter(WaitingList.template_id == template_id)
    return query.update({"status": WaitingListStatus.EXPIRED}, synchronize_session=False)


def _class_name(enrollment: Enrollment) -> str:
    if enrollment.section is None:
        return "Class"
    return enrollment.section.template.name


def run_grace_period(db: Session, now: Optional[datetime] = None) -> CronResult:
    """EXPIRED enrollments past their grace date give their seat back."""
    now = now or utcnow()
    predicate = (
        Enrollment.status == EnrollmentStatus.EXPIRED,
        Enrollment.grace_expiry_date < now,
    )
    ids = [row.id for row in db.query(Enrollment.id).filter(*predicate).all()]

    def handle(enrollment_id):
        enrollment = _lock(db, Enrollment, enrollment_id, *predicate)
        if enrollment is None:
            return SKIPPED

        lifecycle.transition(enrollment, EnrollmentStatus.SLOT_RELEASED)

        section = _lock_section(db, enrollment.section_id)
        if section is not None:
            release_seat(section)
            _expire_approved_waiting_list(db, enrollment.student_id, section.template_id)

        notify(
            db,
            enrollment.student.user_id,
            title="Slot Released",
            message=(
                f'The grace period for "{_class_name(enrollment)}" has ended and your seat '
                "has been released. Please register again to continue."
            ),
            type=NotificationType.SUBSCRIPTION,
        )
        logger.info("Released slot for enrollment %s", enrollment.id)

    return _run_batch(db, "grace-period", ids, handle, now)


def run_payment_expiry(db: Session, now: Optional[datetime] = None) -> CronResult:
    """PENDING payments past their deadline expire; unpaid first enrollments are cancelled."""
    now = now or utcnow()
    predicate = (
        Payment.status == PaymentStatus.PENDING,
        Payment.expired_at < now,
    )
    ids = [row.id for row in db.query(Payment.id).filter(*predicate).all()]

    def handle(payment_id):
        payment = _lock(db, Payment, payment_id, *predicate)
        if payment is None:
            return SKIPPED

        payment.status = PaymentStatus.EXPIRED
        invoice = payment.invoice
        if invoice is not None and invoice.status == InvoiceStatus.UNPAID:
            invoice.status = InvoiceStatus.OVERDUE

        enrollment = payment.enrollment
        if enrollment.status == EnrollmentStatus.PENDING:
            lifecycle.transition(enrollment, EnrollmentStatus.CANCELLED)
            section = _lock_section(db, enrollment.section_id)
            template_id = None
            if section is not None:
                release_seat(section)
                template_id = section.template_id
            _expire_approved_waiting_list(db, enrollment.student_id, template_id)

        reference = invoice.invoice_number if invoice is not None else payment.order_id
        notify(
            db,
            enrollment.student.user_id,
            title="Payment Expired",
            message=f"The payment deadline for invoice {reference} has passed.",
            type=NotificationType.PAYMENT,
        )
        logger.info("Expired payment %s", payment.id)

    return _run_batch(db, "payment-expiry", ids, handle, now)


def run_subscription_expiry(db: Session, now: Optional[datetime] = None) -> CronResult:
    now = now or utcnow()
    predicate = (
        Enrollment.status == EnrollmentStatus.ACTIVE,
        Enrollment.expiry_date < now,
    )
    ids = [row.id for row in db.query(Enrollment.id).filter(*predicate).all()]

    def handle(enrollment_id):
        enrollment = _lock(db, Enrollment, enrollment_id, *predicate)
        if enrollment is None:
            return SKIPPED

        lifecycle.transition(enrollment, EnrollmentStatus.EXPIRED)
        lifecycle.ensure_grace_date(enrollment)
        days = lifecycle.grace_days(enrollment)
        notify(
            db,
            enrollment.student.user_id,
            title="Subscription Ended",
            message=(
                f'Your subscription to "{_class_name(enrollment)}" has ended. '
                f"Renew within {days} days to keep your seat."
            ),
            type=NotificationType.SUBSCRIPTION,
        )

    return _run_batch(db, "subscription-expiry", ids, handle, now)


def _has_recent_unpaid_invoice(db: Session, enrollment_id, now: datetime) -> bool:
    since = now - timedelta(days=settings.RENEWAL_DEDUP_DAYS)
    return db.query(
        exists().where(
            and_(
                Invoice.enrollment_id == enrollment_id,
                Invoice.status == InvoiceStatus.UNPAID,
                Invoice.created_at >= since,
            )
        )
    ).scalar()


def run_renewal_reminder(
    db: Session,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> CronResult:
    """Issue a renewal invoice and checkout for subscriptions ending soon."""
    now = now or utcnow()
    horizon = now + timedelta(days=settings.RENEWAL_REMINDER_DAYS)
    predicate = (
        Enrollment.status == EnrollmentStatus.ACTIVE,
        Enrollment.expiry_date >= now,
        Enrollment.expiry_date <= horizon,
    )
    ids = [row.id for row in db.query(Enrollment.id).filter(*predicate).all()]

    def handle(enrollment_id):
        enrollment = _lock(db, Enrollment, enrollment_id, *predicate)
        if enrollment is None:
            return SKIPPED
        if _has_recent_unpaid_invoice(db, enrollment.id, now):
            logger.info("Enrollment %s already has a pending renewal invoice", enrollment.id)
            return SKIPPED
        if enrollment.section is None:
            logger.info("Enrollment %s has no section, skipping renewal", enrollment.id)
            return SKIPPED

        invoice = invoices.issue_invoice(
            db,
            enrollment,
            period_start=enrollment.expiry_date,
            notes="Renewal",
            now=now,
        )
        payment = open_checkout(db, enrollment, invoice, gateway)

        days_left = ceil_days(enrollment.expiry_date - now)
        notify(
            db,
            enrollment.student.user_id,
            title="Reminder: Renew Your Subscription",
            message=(
                f'Your subscription to "{enrollment.section.template.name}" ends in '
                f"{days_left} day(s). Click to renew."
            ),
            type=NotificationType.SUBSCRIPTION,
            link=payment.redirect_url,
        )
        logger.info("Created renewal invoice %s for enrollment %s", invoice.invoice_number, enrollment.id)

    return _run_batch(db, "renewal-reminder", ids, handle, now)


def run_meeting_reminder(db: Session, now: Optional[datetime] = None) -> CronResult:
    """Notify actively enrolled students about meetings starting soon.

    The window is half-open so consecutive 30-minute runs never remind twice.
    """
    now = now or utcnow()
    window_start = now + timedelta(minutes=settings.MEETING_REMINDER_MIN_MINUTES)
    window_end = now + timedelta(minutes=settings.MEETING_REMINDER_MAX_MINUTES)
    ids = [
        row.id
        for row in db.query(ScheduledMeeting.id)
        .filter(
            ScheduledMeeting.status == MeetingStatus.SCHEDULED,
            ScheduledMeeting.scheduled_at >= window_start,
            ScheduledMeeting.scheduled_at < window_end,
        )
        .all()
    ]
    sent = 0

    def handle(meeting_id):
        nonlocal sent
        meeting = db.query(ScheduledMeeting).filter(ScheduledMeeting.id == meeting_id).first()
        minutes_until = ceil_minutes(meeting.scheduled_at - now)
        enrollments = (
            db.query(Enrollment)
            .filter(
                Enrollment.section_id == meeting.section_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
            .all()
        )
        for enrollment in enrollments:
            notify(
                db,
                enrollment.student.user_id,
                title="Meeting Starting Soon",
                message=(
                    f'"{meeting.title}" starts in {minutes_until} minutes. '
                    "Don't forget to join!"
                ),
                type=NotificationType.CLASS,
                link=meeting.meeting_url,
            )
        db.flush()
        sent += len(enrollments)
        logger.info("Queued reminders for meeting %s to %s student(s)", meeting.id, len(enrollments))

    result = _run_batch(db, "meeting-reminder", ids, handle, now)
    result.notifications_sent = sent
    result.message = f"Sent {sent} meeting reminder(s) for {result.processed} meeting(s)"
    return result


def activate_paid_enrollments(db: Session, now: Optional[datetime] = None) -> CronResult:
    """PENDING/PAID enrollments whose payment settled become ACTIVE for a fresh period."""
    now = now or utcnow()
    predicate = (
        Enrollment.status.in_((EnrollmentStatus.PENDING, EnrollmentStatus.PAID)),
    )
    ids = [
        row.id
        for row in db.query(Enrollment.id)
        .join(Payment, Payment.enrollment_id == Enrollment.id)
        .filter(*predicate, Payment.status == PaymentStatus.PAID)
        .distinct()
        .all()
    ]

    def handle(enrollment_id):
        enrollment = _lock(db, Enrollment, enrollment_id, *predicate)
        if enrollment is None:
            return SKIPPED

        lifecycle.activate(enrollment, now)
        lifecycle.reset_meeting_quota(enrollment)
        notify(
            db,
            enrollment.student.user_id,
            title="Class Active",
            message=f'"{_class_name(enrollment)}" is now active. You can start learning!',
            type=NotificationType.CLASS,
        )

    return _run_batch(db, "activate", ids, handle, now)


def run_daily(
    db: Session,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> List[CronResult]:
    """Run every lifecycle job once; a job that blows up does not stop the others."""
    now = now or utcnow()
    jobs = [
        ("payment-expiry", lambda: run_payment_expiry(db, now)),
        ("subscription-expiry", lambda: run_subscription_expiry(db, now)),
        ("grace-period", lambda: run_grace_period(db, now)),
        ("renewal-reminder", lambda: run_renewal_reminder(db, gateway, now)),
        ("meeting-reminder", lambda: run_meeting_reminder(db, now)),
    ]
    results = []
    for task, job in jobs:
        try:
            results.append(job())
        except Exception as e:
            db.rollback()
            logger.exception("[daily] %s failed", task)
            results.append(
                CronResult(task=task, success=False, message=str(e), timestamp=now)
            )
    return results
