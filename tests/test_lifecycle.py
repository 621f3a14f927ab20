from datetime import datetime, timedelta

import pytest

from academy.core.config import settings
from academy.models import Enrollment, EnrollmentStatus
from academy.services import lifecycle
from academy.services.exceptions import InvalidTransitionError


@pytest.mark.parametrize(
    "current, target",
    [
        (EnrollmentStatus.PENDING, EnrollmentStatus.PAID),
        (EnrollmentStatus.PENDING, EnrollmentStatus.ACTIVE),
        (EnrollmentStatus.PENDING, EnrollmentStatus.CANCELLED),
        (EnrollmentStatus.PAID, EnrollmentStatus.ACTIVE),
        (EnrollmentStatus.ACTIVE, EnrollmentStatus.EXPIRED),
        (EnrollmentStatus.EXPIRED, EnrollmentStatus.SLOT_RELEASED),
        (EnrollmentStatus.EXPIRED, EnrollmentStatus.ACTIVE),
    ],
)
def test_allowed_transitions(current, target):
    enrollment = Enrollment(status=current)
    lifecycle.transition(enrollment, target)
    assert enrollment.status == target


@pytest.mark.parametrize(
    "current, target",
    [
        (EnrollmentStatus.ACTIVE, EnrollmentStatus.PENDING),
        (EnrollmentStatus.PAID, EnrollmentStatus.CANCELLED),
        (EnrollmentStatus.SLOT_RELEASED, EnrollmentStatus.ACTIVE),
        (EnrollmentStatus.CANCELLED, EnrollmentStatus.PENDING),
        (EnrollmentStatus.ACTIVE, EnrollmentStatus.SLOT_RELEASED),
    ],
)
def test_rejected_transitions(current, target):
    enrollment = Enrollment(status=current)
    with pytest.raises(InvalidTransitionError) as exc:
        lifecycle.transition(enrollment, target)
    assert exc.value.message == f"Enrollment cannot move from {current.value} to {target.value}"
    assert enrollment.status == current


def test_set_period_uses_template_grace(factory):
    section = factory.section(template=factory.template(grace_period_days=3))
    enrollment = factory.enrollment(section=section)
    start = datetime(2026, 10, 1, 9, 0)

    lifecycle.set_period(enrollment, start)

    assert enrollment.expiry_date == start + timedelta(days=30)
    assert enrollment.grace_expiry_date == start + timedelta(days=33)


def test_grace_defaults_without_section():
    enrollment = Enrollment(status=EnrollmentStatus.ACTIVE, expiry_date=datetime(2026, 10, 1))
    lifecycle.ensure_grace_date(enrollment)
    assert enrollment.grace_expiry_date == datetime(2026, 10, 8)


def test_grace_default_comes_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_GRACE_PERIOD_DAYS", 3)
    enrollment = Enrollment(status=EnrollmentStatus.ACTIVE, expiry_date=datetime(2026, 10, 1))
    lifecycle.ensure_grace_date(enrollment)
    assert enrollment.grace_expiry_date == datetime(2026, 10, 4)
