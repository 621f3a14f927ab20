from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Time,
    Uuid,
)
from sqlalchemy.orm import relationship
import uuid
import enum

from academy.core.database import Base
from academy.utils.time import utcnow


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    TUTOR = "TUTOR"
    STUDENT = "STUDENT"
    EXECUTIVE = "EXECUTIVE"


class User(Base):
    """Local mirror of an identity-provider account."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.STUDENT)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    student_profile = relationship("Student", back_populates="user", uselist=False)
    tutor_profile = relationship("Tutor", back_populates="user", uselist=False)
    notifications = relationship("Notification", back_populates="user")


class Student(Base):
    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="student_profile")
    enrollments = relationship("Enrollment", back_populates="student")
    waiting_list_entries = relationship("WaitingList", back_populates="student")


class Tutor(Base):
    __tablename__ = "tutors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="tutor_profile")
    availability = relationship(
        "TutorAvailability", back_populates="tutor", cascade="all, delete-orphan"
    )
    sections = relationship("ClassSection", back_populates="tutor")


class TutorAvailability(Base):
    __tablename__ = "tutor_availability"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tutor_id = Column(Uuid, ForeignKey("tutors.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday, 6 = Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    tutor = relationship("Tutor", back_populates="availability")
