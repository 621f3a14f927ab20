"""Enrollment state machine.

Every status change on an Enrollment goes through ``transition`` so that the
allowed moves live in one table. Period arithmetic for activation and renewal
is kept here as well.
"""

from datetime import datetime, timedelta
from typing import Optional

from academy.core.config import settings
from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.services.exceptions import InvalidTransitionError

ALLOWED_TRANSITIONS = {
    EnrollmentStatus.PENDING: {
        EnrollmentStatus.PAID,
        EnrollmentStatus.ACTIVE,
        EnrollmentStatus.CANCELLED,
    },
    EnrollmentStatus.PAID: {EnrollmentStatus.ACTIVE},
    EnrollmentStatus.ACTIVE: {EnrollmentStatus.EXPIRED},
    EnrollmentStatus.EXPIRED: {EnrollmentStatus.SLOT_RELEASED, EnrollmentStatus.ACTIVE},
    EnrollmentStatus.SLOT_RELEASED: set(),
    EnrollmentStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = (EnrollmentStatus.SLOT_RELEASED, EnrollmentStatus.CANCELLED)


def can_transition(current: EnrollmentStatus, target: EnrollmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def transition(enrollment: Enrollment, target: EnrollmentStatus) -> Enrollment:
    if not can_transition(enrollment.status, target):
        raise InvalidTransitionError("Enrollment", enrollment.status, target)
    enrollment.status = target
    return enrollment


def grace_days(enrollment: Enrollment) -> int:
    if enrollment.section is not None:
        return enrollment.section.template.grace_period_days
    return settings.DEFAULT_GRACE_PERIOD_DAYS


def set_period(
    enrollment: Enrollment,
    start: datetime,
    end: Optional[datetime] = None,
) -> None:
    """Stamp start/expiry/grace dates; grace always trails expiry."""
    if end is None:
        end = start + timedelta(days=settings.SUBSCRIPTION_PERIOD_DAYS)
    enrollment.start_date = start
    enrollment.expiry_date = end
    enrollment.grace_expiry_date = end + timedelta(days=grace_days(enrollment))


def reset_meeting_quota(enrollment: Enrollment) -> None:
    if enrollment.section is None:
        return
    quota = enrollment.section.template.meetings_per_period
    enrollment.meetings_allowed = quota
    enrollment.meetings_attended = 0
    enrollment.total_meetings = quota
    enrollment.meetings_remaining = quota


def activate(enrollment: Enrollment, now: datetime) -> Enrollment:
    transition(enrollment, EnrollmentStatus.ACTIVE)
    set_period(enrollment, now)
    return enrollment


def ensure_grace_date(enrollment: Enrollment) -> None:
    if enrollment.expiry_date is None:
        return
    floor = enrollment.expiry_date + timedelta(days=grace_days(enrollment))
    if enrollment.grace_expiry_date is None or enrollment.grace_expiry_date < enrollment.expiry_date:
        enrollment.grace_expiry_date = floor
