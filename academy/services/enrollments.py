import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.models.programs import ClassSection, SectionStatus
from academy.models.users import User
from academy.services import lifecycle
from academy.services.checkout import ensure_owner, load_enrollment
from academy.services.exceptions import BusinessRuleError, NotFoundError
from academy.services.sections import ensure_not_enrolled, occupy_seat

logger = logging.getLogger(__name__)


def enroll_student(db: Session, user: User, section_id) -> Enrollment:
    """Direct signup: take a seat in ``section_id`` and leave the enrollment PENDING."""
    student = user.student_profile
    if student is None:
        raise NotFoundError("Student profile not found")

    section = (
        db.query(ClassSection)
        .filter(ClassSection.id == section_id)
        .with_for_update()
        .first()
    )
    if not section:
        raise NotFoundError("Section not found")
    if section.status != SectionStatus.ACTIVE:
        raise BusinessRuleError("Section is not open for enrollment")

    ensure_not_enrolled(db, student.id, section.id)
    occupy_seat(section)
    enrollment = Enrollment(
        student_id=student.id,
        section_id=section.id,
        status=EnrollmentStatus.PENDING,
    )
    enrollment.section = section
    lifecycle.reset_meeting_quota(enrollment)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)

    logger.info("Student %s enrolled in section %s", student.id, section.id)
    return enrollment


def get_payment_status(db: Session, user: User, enrollment_id) -> dict:
    enrollment = load_enrollment(db, enrollment_id)
    ensure_owner(enrollment, user)

    section = None
    if enrollment.section is not None:
        section = {
            "id": enrollment.section.id,
            "name": enrollment.section.display_name,
            "subject": enrollment.section.template.subject,
        }
    return {
        "enrollment": enrollment,
        "section": section,
        "payment": enrollment.current_payment,
    }


# Enrollments whose quota still follows the template
QUOTA_SYNC_STATUSES = (EnrollmentStatus.PENDING, EnrollmentStatus.ACTIVE)


def _quota_candidates(db: Session) -> List[Enrollment]:
    enrollments = (
        db.query(Enrollment)
        .filter(
            Enrollment.section_id.isnot(None),
            Enrollment.status.in_(QUOTA_SYNC_STATUSES),
        )
        .all()
    )
    return [
        e for e in enrollments
        if e.total_meetings != e.section.template.meetings_per_period
    ]


def find_quota_drift(db: Session) -> List[Dict]:
    return [
        {
            "enrollment_id": e.id,
            "student_name": e.student.user.name,
            "student_email": e.student.user.email,
            "class_name": e.section.template.name,
            "current_total": e.total_meetings,
            "current_remaining": e.meetings_remaining,
            "template_meetings": e.section.template.meetings_per_period,
            "status": e.status,
        }
        for e in _quota_candidates(db)
    ]


def sync_meeting_quotas(db: Session) -> List[Dict]:
    """Align meeting quotas with the template, keeping meetings already used."""
    updates = []
    for enrollment in _quota_candidates(db):
        template_meetings = enrollment.section.template.meetings_per_period
        used = max(0, enrollment.total_meetings - enrollment.meetings_remaining)
        updates.append(
            {
                "enrollment_id": enrollment.id,
                "class_name": enrollment.section.template.name,
                "old_total": enrollment.total_meetings,
                "new_total": template_meetings,
            }
        )
        enrollment.total_meetings = template_meetings
        enrollment.meetings_allowed = template_meetings
        enrollment.meetings_remaining = max(0, template_meetings - used)
    db.commit()
    if updates:
        logger.info("Synced meeting quotas for %s enrollment(s)", len(updates))
    return updates
