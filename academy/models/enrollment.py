from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Uuid,
)
from sqlalchemy.orm import relationship
import uuid
import enum

from academy.core.database import Base
from academy.utils.time import utcnow


class EnrollmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SLOT_RELEASED = "SLOT_RELEASED"
    CANCELLED = "CANCELLED"


# Statuses that occupy a seat in the section
SEAT_HOLDING_STATUSES = (
    EnrollmentStatus.PENDING,
    EnrollmentStatus.PAID,
    EnrollmentStatus.ACTIVE,
    EnrollmentStatus.EXPIRED,
)


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    section_id = Column(Uuid, ForeignKey("class_sections.id"), nullable=True, index=True)
    status = Column(
        Enum(EnrollmentStatus), nullable=False, default=EnrollmentStatus.PENDING, index=True
    )
    start_date = Column(DateTime, nullable=True)
    expiry_date = Column(DateTime, nullable=True)
    grace_expiry_date = Column(DateTime, nullable=True)
    meetings_allowed = Column(Integer, nullable=False, default=0)
    meetings_attended = Column(Integer, nullable=False, default=0)
    total_meetings = Column(Integer, nullable=False, default=0)
    meetings_remaining = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    student = relationship("Student", back_populates="enrollments")
    section = relationship("ClassSection", back_populates="enrollments")
    payments = relationship(
        "Payment", back_populates="enrollment", order_by="Payment.created_at"
    )
    invoices = relationship("Invoice", back_populates="enrollment")
    attendances = relationship("MeetingAttendance", back_populates="enrollment")

    @property
    def current_payment(self):
        return self.payments[-1] if self.payments else None
