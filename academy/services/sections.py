import logging
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from academy.models.enrollment import Enrollment, SEAT_HOLDING_STATUSES
from academy.models.programs import ClassSection, SectionStatus
from academy.services.exceptions import BusinessRuleError

logger = logging.getLogger(__name__)


def has_room(section: ClassSection) -> bool:
    return section.current_enrollments < section.template.max_students_per_section


def _refresh_status(section: ClassSection) -> None:
    if section.status == SectionStatus.CLOSED:
        return
    if section.current_enrollments >= section.template.max_students_per_section:
        section.status = SectionStatus.FULL
    elif section.status == SectionStatus.FULL:
        section.status = SectionStatus.ACTIVE


def ensure_not_enrolled(db: Session, student_id, section_id) -> None:
    """A student holds at most one seat per section."""
    existing = (
        db.query(Enrollment.id)
        .filter(
            Enrollment.student_id == student_id,
            Enrollment.section_id == section_id,
            Enrollment.status.in_(SEAT_HOLDING_STATUSES),
        )
        .first()
    )
    if existing:
        raise BusinessRuleError("Already enrolled in this section")


def occupy_seat(section: ClassSection) -> None:
    if not has_room(section):
        raise BusinessRuleError("Section is full")
    section.current_enrollments += 1
    _refresh_status(section)


def release_seat(section: ClassSection) -> None:
    if section.current_enrollments <= 0:
        logger.warning(
            "Section %s counter already at 0 when releasing a seat", section.id
        )
        section.current_enrollments = 0
    else:
        section.current_enrollments -= 1
    _refresh_status(section)


def _actual_counts(db: Session) -> Dict:
    rows = (
        db.query(Enrollment.section_id, func.count(Enrollment.id))
        .filter(
            Enrollment.section_id.isnot(None),
            Enrollment.status.in_(SEAT_HOLDING_STATUSES),
        )
        .group_by(Enrollment.section_id)
        .all()
    )
    return {section_id: count for section_id, count in rows}


def find_counter_drift(db: Session) -> List[Dict]:
    counts = _actual_counts(db)
    drift = []
    for section in db.query(ClassSection).all():
        actual = counts.get(section.id, 0)
        if section.current_enrollments != actual:
            drift.append(
                {
                    "section_id": section.id,
                    "section_name": section.display_name,
                    "tutor_name": section.tutor.user.name,
                    "current_field": section.current_enrollments,
                    "actual_count": actual,
                    "status": section.status,
                }
            )
    return drift


def sync_enrollment_counts(db: Session) -> List[Dict]:
    """Rewrite every drifted counter to the real seat count and re-derive FULL/ACTIVE."""
    counts = _actual_counts(db)
    updates = []
    for section in db.query(ClassSection).all():
        actual = counts.get(section.id, 0)
        if section.current_enrollments == actual:
            continue
        updates.append(
            {
                "section_id": section.id,
                "section_name": section.display_name,
                "old_count": section.current_enrollments,
                "new_count": actual,
            }
        )
        section.current_enrollments = actual
        _refresh_status(section)
    db.commit()
    logger.info("Synced enrollment counters for %s section(s)", len(updates))
    return updates
