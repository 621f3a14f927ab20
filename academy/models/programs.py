from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
import uuid
import enum

from academy.core.database import Base
from academy.utils.time import utcnow


class SectionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    FULL = "FULL"
    CLOSED = "CLOSED"


class WaitingListStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class ClassTemplate(Base):
    """A program: the reusable definition sections are opened from."""

    __tablename__ = "class_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    subject = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price_per_month = Column(Integer, nullable=False)
    meetings_per_period = Column(Integer, nullable=False, default=8)
    max_students_per_section = Column(Integer, nullable=False, default=10)
    grace_period_days = Column(Integer, nullable=False, default=7)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    sections = relationship("ClassSection", back_populates="template")


class ClassSection(Base):
    __tablename__ = "class_sections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id = Column(Uuid, ForeignKey("class_templates.id"), nullable=False)
    tutor_id = Column(Uuid, ForeignKey("tutors.id"), nullable=False)
    section_label = Column(String, nullable=False)  # e.g. "A"
    # Denormalized seat counter, see services.sections.sync_enrollment_counts
    current_enrollments = Column(Integer, nullable=False, default=0)
    status = Column(Enum(SectionStatus), nullable=False, default=SectionStatus.ACTIVE)
    created_at = Column(DateTime, default=utcnow)

    template = relationship("ClassTemplate", back_populates="sections")
    tutor = relationship("Tutor", back_populates="sections")
    enrollments = relationship("Enrollment", back_populates="section")
    meetings = relationship("ScheduledMeeting", back_populates="section")

    @property
    def display_name(self) -> str:
        return f"{self.template.name} - Section {self.section_label}"


class WaitingList(Base):
    __tablename__ = "waiting_list"
    __table_args__ = (
        UniqueConstraint("student_id", "template_id", name="uq_waiting_list_student_template"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id"), nullable=False)
    template_id = Column(Uuid, ForeignKey("class_templates.id"), nullable=False)
    assigned_section_id = Column(Uuid, ForeignKey("class_sections.id"), nullable=True)
    status = Column(
        Enum(WaitingListStatus), nullable=False, default=WaitingListStatus.PENDING
    )
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    student = relationship("Student", back_populates="waiting_list_entries")
    template = relationship("ClassTemplate")
    assigned_section = relationship("ClassSection")
