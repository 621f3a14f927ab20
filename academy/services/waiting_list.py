import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.models.programs import ClassSection, SectionStatus, WaitingList, WaitingListStatus
from academy.services import invoices, lifecycle
from academy.services.checkout import open_checkout
from academy.services.exceptions import BusinessRuleError, NotFoundError
from academy.services.gateway import PaymentGateway
from academy.services.sections import ensure_not_enrolled, occupy_seat
from academy.utils.time import utcnow

logger = logging.getLogger(__name__)


def _get_pending_entry(db: Session, entry_id) -> WaitingList:
    entry = db.query(WaitingList).filter(WaitingList.id == entry_id).first()
    if not entry:
        raise NotFoundError("Waiting list entry not found")
    if entry.status != WaitingListStatus.PENDING:
        raise BusinessRuleError(f"Waiting list entry is already {entry.status.value}")
    return entry


def approve_entry(
    db: Session,
    entry_id,
    section_id,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> dict:
    """Seat a waiting student in ``section_id`` and open their first checkout.

    Everything happens in one transaction: if the gateway refuses the
    checkout the seat, enrollment and invoice are rolled back with it.
    """
    now = now or utcnow()
    entry = _get_pending_entry(db, entry_id)

    section = (
        db.query(ClassSection)
        .filter(ClassSection.id == section_id)
        .with_for_update()
        .first()
    )
    if not section:
        raise NotFoundError("Section not found")
    if section.template_id != entry.template_id:
        raise BusinessRuleError("Section belongs to a different program")

    ensure_not_enrolled(db, entry.student_id, section.id)
    occupy_seat(section)

    enrollment = Enrollment(
        student_id=entry.student_id,
        section_id=section.id,
        status=EnrollmentStatus.PENDING,
    )
    enrollment.section = section
    enrollment.student = entry.student
    lifecycle.set_period(enrollment, now)
    lifecycle.reset_meeting_quota(enrollment)
    db.add(enrollment)
    db.flush()

    invoice = invoices.issue_invoice(db, enrollment, period_start=now, now=now)
    payment = open_checkout(db, enrollment, invoice, gateway)

    entry.status = WaitingListStatus.APPROVED
    entry.assigned_section_id = section.id
    entry.approved_at = now
    db.commit()
    db.refresh(entry)

    logger.info(
        "Approved waiting list entry %s into section %s (invoice %s)",
        entry.id, section.id, invoice.invoice_number,
    )
    return {
        "entry": entry,
        "enrollment": enrollment,
        "invoice": invoice,
        "payment": payment,
    }


def reject_entry(
    db: Session,
    entry_id,
    rejection_note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WaitingList:
    entry = _get_pending_entry(db, entry_id)
    entry.status = WaitingListStatus.REJECTED
    entry.rejected_at = now or utcnow()
    entry.rejection_note = rejection_note
    db.commit()
    db.refresh(entry)
    return entry


def list_entries(db: Session, status: Optional[WaitingListStatus] = None) -> List[dict]:
    query = db.query(WaitingList)
    if status is not None:
        query = query.filter(WaitingList.status == status)
    entries = query.order_by(WaitingList.created_at.desc()).all()

    results = []
    for entry in entries:
        user = entry.student.user
        open_sections = [
            section for section in entry.template.sections
            if section.status == SectionStatus.ACTIVE
        ]
        results.append(
            {
                "id": entry.id,
                "student_id": entry.student_id,
                "template_id": entry.template_id,
                "assigned_section_id": entry.assigned_section_id,
                "status": entry.status,
                "approved_at": entry.approved_at,
                "rejected_at": entry.rejected_at,
                "rejection_note": entry.rejection_note,
                "created_at": entry.created_at,
                "student_name": user.name,
                "student_email": user.email,
                "student_phone": user.phone,
                "program_name": entry.template.name,
                "open_sections": [
                    {"id": s.id, "name": s.display_name, "subject": s.template.subject}
                    for s in open_sections
                ],
            }
        )
    return results
