from sqlalchemy import (
    Column,
    String,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from datetime import timedelta
import uuid
import enum

from academy.core.database import Base
from academy.utils.time import utcnow


class MeetingStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AttendanceStatus(str, enum.Enum):
    PENDING = "PENDING"
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    EXCUSED = "EXCUSED"


class ScheduledMeeting(Base):
    __tablename__ = "scheduled_meetings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    section_id = Column(Uuid, ForeignKey("class_sections.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False)  # minutes
    meeting_url = Column(String, nullable=True)
    status = Column(Enum(MeetingStatus), nullable=False, default=MeetingStatus.SCHEDULED)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    section = relationship("ClassSection", back_populates="meetings")
    attendances = relationship(
        "MeetingAttendance", back_populates="meeting", cascade="all, delete-orphan"
    )

    @property
    def ends_at(self):
        return self.scheduled_at + timedelta(minutes=self.duration)

    @property
    def attendance_count(self):
        return len(self.attendances)


class MeetingAttendance(Base):
    __tablename__ = "meeting_attendance"
    __table_args__ = (
        UniqueConstraint("meeting_id", "enrollment_id", name="uq_meeting_attendance"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id = Column(Uuid, ForeignKey("scheduled_meetings.id"), nullable=False)
    enrollment_id = Column(Uuid, ForeignKey("enrollments.id"), nullable=False)
    status = Column(Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.PENDING)
    created_at = Column(DateTime, default=utcnow)

    meeting = relationship("ScheduledMeeting", back_populates="attendances")
    enrollment = relationship("Enrollment", back_populates="attendances")
