import logging
from datetime import datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.models.meetings import (
    AttendanceStatus,
    MeetingAttendance,
    MeetingStatus,
    ScheduledMeeting,
)
from academy.models.programs import ClassSection
from academy.models.users import TutorAvailability
from academy.schemas.meetings import MeetingCreate
from academy.services.exceptions import BusinessRuleError, NotFoundError
from academy.utils.time import to_naive_utc

logger = logging.getLogger(__name__)

# Latest availability end that still covers a meeting ending at midnight
END_OF_DAY = time(23, 59, 59)


def intervals_overlap(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime,
) -> bool:
    # new starts inside existing
    if other_start <= start < other_end:
        return True
    # existing starts inside new
    if start <= other_start < end:
        return True
    # new contains existing
    return start <= other_start and end >= other_end


class MeetingScheduler:
    """Creates meetings for a section after checking the tutor's calendar."""

    def __init__(self, db: Session, section_id):
        self.db = db
        self.section = self._get_section(section_id)
        self.tutor = self.section.tutor

    def _get_section(self, section_id) -> ClassSection:
        section = self.db.query(ClassSection).filter(ClassSection.id == section_id).first()
        if not section:
            raise NotFoundError("Section not found")
        return section

    def is_available(self, start: datetime, end: datetime) -> bool:
        """The whole [start, end) interval must sit inside one weekly window.

        A meeting that ends exactly at midnight needs a window running to
        END_OF_DAY; anything crossing into the next day is never available.
        """
        ends_at_midnight = end == datetime.combine(start.date() + timedelta(days=1), time.min)
        if end.date() != start.date() and not ends_at_midnight:
            return False

        windows = (
            self.db.query(TutorAvailability)
            .filter(
                TutorAvailability.tutor_id == self.tutor.id,
                TutorAvailability.day_of_week == start.weekday(),
            )
            .all()
        )
        for window in windows:
            if window.start_time > start.time():
                continue
            if ends_at_midnight:
                if window.end_time >= END_OF_DAY:
                    return True
            elif window.end_time >= end.time():
                return True
        return False

    def same_day_meetings(self, day: datetime) -> List[ScheduledMeeting]:
        day_start = datetime.combine(day.date(), datetime.min.time())
        day_end = day_start + timedelta(days=1)
        return (
            self.db.query(ScheduledMeeting)
            .join(ClassSection, ClassSection.id == ScheduledMeeting.section_id)
            .filter(
                ClassSection.tutor_id == self.tutor.id,
                ScheduledMeeting.status != MeetingStatus.CANCELLED,
                ScheduledMeeting.scheduled_at >= day_start,
                ScheduledMeeting.scheduled_at < day_end,
            )
            .all()
        )

    def find_conflict(
        self,
        start: datetime,
        end: datetime,
        exclude_id=None,
    ) -> Optional[ScheduledMeeting]:
        for meeting in self.same_day_meetings(start):
            if meeting.id == exclude_id:
                continue
            if intervals_overlap(start, end, meeting.scheduled_at, meeting.ends_at):
                return meeting
        return None

    def check_slot(self, start: datetime, end: datetime, exclude_id=None) -> None:
        if not self.is_available(start, end):
            raise BusinessRuleError("Tutor is not available at this time")

        conflict = self.find_conflict(start, end, exclude_id=exclude_id)
        if conflict is not None:
            raise BusinessRuleError(
                f'Schedule conflicts with "{conflict.title}" at '
                f"{conflict.scheduled_at.strftime('%H:%M')}"
            )

    def schedule(self, data: MeetingCreate, created_by: Optional[str] = None) -> ScheduledMeeting:
        start = to_naive_utc(data.scheduled_at)
        end = start + timedelta(minutes=data.duration)
        self.check_slot(start, end)

        meeting = ScheduledMeeting(
            section_id=self.section.id,
            title=data.title,
            description=data.description,
            scheduled_at=start,
            duration=data.duration,
            meeting_url=data.meeting_url,
            status=MeetingStatus.SCHEDULED,
            created_by=created_by,
        )
        self.db.add(meeting)
        self.db.flush()

        enrollments = (
            self.db.query(Enrollment)
            .filter(
                Enrollment.section_id == self.section.id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
            .all()
        )
        for enrollment in enrollments:
            self.db.add(
                MeetingAttendance(
                    meeting_id=meeting.id,
                    enrollment_id=enrollment.id,
                    status=AttendanceStatus.PENDING,
                )
            )

        self.db.commit()
        self.db.refresh(meeting)
        logger.info(
            "Scheduled meeting %s for section %s with %s attendee(s)",
            meeting.id, self.section.id, len(enrollments),
        )
        return meeting


def list_meetings(db: Session, section_id=None) -> List[ScheduledMeeting]:
    query = db.query(ScheduledMeeting)
    if section_id is not None:
        query = query.filter(ScheduledMeeting.section_id == section_id)
    return query.order_by(ScheduledMeeting.scheduled_at.desc()).all()


def get_meeting(db: Session, meeting_id) -> ScheduledMeeting:
    meeting = db.query(ScheduledMeeting).filter(ScheduledMeeting.id == meeting_id).first()
    if not meeting:
        raise NotFoundError("Meeting not found")
    return meeting


def update_meeting(db: Session, meeting_id, changes: dict) -> ScheduledMeeting:
    """Apply an admin edit; a new time or a revived meeting is checked like a new one."""
    meeting = get_meeting(db, meeting_id)

    start = meeting.scheduled_at
    if changes.get("scheduled_at") is not None:
        start = to_naive_utc(changes["scheduled_at"])
    duration = changes.get("duration") or meeting.duration
    status = MeetingStatus(changes["status"]) if changes.get("status") else meeting.status

    moved = start != meeting.scheduled_at or duration != meeting.duration
    revived = meeting.status == MeetingStatus.CANCELLED and status != MeetingStatus.CANCELLED
    if status != MeetingStatus.CANCELLED and (moved or revived):
        scheduler = MeetingScheduler(db, meeting.section_id)
        scheduler.check_slot(start, start + timedelta(minutes=duration), exclude_id=meeting.id)

    if changes.get("title") is not None:
        meeting.title = changes["title"]
    for field in ("description", "meeting_url"):
        if field in changes:
            setattr(meeting, field, changes[field])
    meeting.scheduled_at = start
    meeting.duration = duration
    meeting.status = status

    db.commit()
    db.refresh(meeting)
    logger.info("Updated meeting %s (%s)", meeting.id, meeting.status.value)
    return meeting


def delete_meeting(db: Session, meeting_id) -> None:
    meeting = get_meeting(db, meeting_id)
    # attendance rows go with it
    db.delete(meeting)
    db.commit()
    logger.info("Deleted meeting %s", meeting_id)
