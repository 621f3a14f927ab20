from datetime import datetime, time, timedelta
from uuid import uuid4

import pytest

from academy.models import (
    EnrollmentStatus,
    MeetingAttendance,
    MeetingStatus,
    ScheduledMeeting,
)
from academy.schemas.meetings import MeetingCreate
from academy.services.exceptions import BusinessRuleError, NotFoundError
from academy.services.scheduling import END_OF_DAY, MeetingScheduler, intervals_overlap
from tests.conftest import auth_headers


def next_monday(hour, minute=0) -> datetime:
    today = datetime.now().date()
    days_ahead = (7 - today.weekday()) % 7 or 7
    return datetime.combine(today + timedelta(days=days_ahead), time(hour, minute))


@pytest.fixture
def section(factory):
    # Monday 08:00-17:00 only
    tutor = factory.tutor(availability=[(0, time(8), time(17))])
    return factory.section(tutor=tutor)


@pytest.fixture
def existing_meeting(db, section):
    meeting = ScheduledMeeting(
        section_id=section.id,
        title="Algebra",
        scheduled_at=next_monday(10),
        duration=60,
        status=MeetingStatus.SCHEDULED,
    )
    db.add(meeting)
    db.commit()
    return meeting


def meeting_in(section, start, duration=60, title="Geometry"):
    return MeetingCreate(section_id=section.id, title=title, scheduled_at=start, duration=duration)


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ((10, 30), (11, 0), True),   # new inside existing
        ((9, 30), (10, 30), True),   # existing starts inside new
        ((9, 0), (12, 0), True),     # new contains existing
        ((11, 0), (12, 0), False),   # back to back
        ((8, 0), (10, 0), False),
    ],
)
def test_intervals_overlap(start, end, expected):
    day = datetime(2026, 10, 19)
    existing = (day.replace(hour=10), day.replace(hour=11))
    new = (day.replace(hour=start[0], minute=start[1]), day.replace(hour=end[0], minute=end[1]))
    assert intervals_overlap(*new, *existing) is expected


@pytest.mark.parametrize(
    "start, duration",
    [
        ((10, 30), 30),
        ((9, 30), 60),
        ((9, 0), 180),
    ],
)
def test_overlapping_meeting_is_rejected(db, section, existing_meeting, start, duration):
    scheduler = MeetingScheduler(db, section.id)

    with pytest.raises(BusinessRuleError) as exc:
        scheduler.schedule(meeting_in(section, next_monday(*start), duration))

    assert exc.value.message == 'Schedule conflicts with "Algebra" at 10:00'
    assert db.query(ScheduledMeeting).count() == 1


def test_conflict_checks_tutor_across_sections(db, factory, section, existing_meeting):
    other_section = factory.section(template=section.template, tutor=section.tutor, section_label="B")
    scheduler = MeetingScheduler(db, other_section.id)

    with pytest.raises(BusinessRuleError):
        scheduler.schedule(meeting_in(other_section, next_monday(10, 30), 30))


def test_cancelled_meetings_do_not_block(db, section, existing_meeting):
    existing_meeting.status = MeetingStatus.CANCELLED
    db.commit()

    meeting = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(10, 30), 30))

    assert meeting.status == MeetingStatus.SCHEDULED


def test_back_to_back_meeting_is_allowed(db, section, existing_meeting):
    meeting = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(11), 60))
    assert meeting.scheduled_at == next_monday(11)


@pytest.mark.parametrize(
    "start, duration",
    [
        (lambda: next_monday(7), 60),                      # before the window opens
        (lambda: next_monday(16, 30), 60),                 # runs past the window
        (lambda: next_monday(10) + timedelta(days=1), 60),  # no Tuesday availability
        (lambda: next_monday(23), 60),                     # ends at midnight, window closes at 17:00
    ],
)
def test_tutor_must_be_available(db, section, start, duration):
    with pytest.raises(BusinessRuleError) as exc:
        MeetingScheduler(db, section.id).schedule(meeting_in(section, start(), duration))
    assert exc.value.message == "Tutor is not available at this time"


def test_meeting_ending_at_midnight_needs_window_to_end_of_day(db, factory):
    tutor = factory.tutor(availability=[(0, time(18), END_OF_DAY)])
    section = factory.section(tutor=tutor)

    meeting = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(23), 60))

    assert meeting.ends_at == next_monday(0) + timedelta(days=1)


def test_attendance_rows_for_active_enrollments_only(db, factory, section):
    active = factory.enrollment(section=section, status=EnrollmentStatus.ACTIVE)
    factory.enrollment(section=section, status=EnrollmentStatus.PENDING)

    meeting = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(14)))

    rows = db.query(MeetingAttendance).filter(MeetingAttendance.meeting_id == meeting.id).all()
    assert [row.enrollment_id for row in rows] == [active.id]
    assert meeting.attendance_count == 1


def test_unknown_section(db):
    with pytest.raises(NotFoundError):
        MeetingScheduler(db, uuid4())


def test_schedule_endpoint(client, factory, section, existing_meeting):
    admin = factory.admin()
    body = {
        "section_id": str(section.id),
        "title": "Geometry",
        "scheduled_at": next_monday(10, 30).isoformat(),
        "duration": 30,
    }

    conflict = client.post("/api/admin/schedule", json=body, headers=auth_headers(admin))
    assert conflict.status_code == 400
    assert conflict.json() == {"error": 'Schedule conflicts with "Algebra" at 10:00'}

    body["scheduled_at"] = next_monday(13).isoformat()
    created = client.post("/api/admin/schedule", json=body, headers=auth_headers(admin))
    assert created.status_code == 201
    assert created.json()["created_by"] == str(admin.id)

    listed = client.get("/api/admin/schedule", headers=auth_headers(admin))
    assert [m["title"] for m in listed.json()] == ["Geometry", "Algebra"]


def test_schedule_endpoint_is_admin_only(client, factory, section):
    student = factory.student()
    response = client.get("/api/admin/schedule", headers=auth_headers(student.user))
    assert response.status_code == 403


def test_get_meeting_with_attendance(client, db, factory, section):
    factory.enrollment(section=section, status=EnrollmentStatus.ACTIVE)
    meeting = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(14)))

    response = client.get(f"/api/admin/schedule/{meeting.id}", headers=auth_headers(factory.admin()))

    assert response.status_code == 200
    assert response.json()["attendance_count"] == 1
    assert response.json()["attendances"][0]["status"] == "PENDING"


def test_cancelling_a_meeting_frees_its_slot(client, db, factory, section, existing_meeting):
    headers = auth_headers(factory.admin())
    body = {
        "section_id": str(section.id),
        "title": "Geometry",
        "scheduled_at": next_monday(10, 30).isoformat(),
        "duration": 30,
    }

    cancelled = client.patch(
        f"/api/admin/schedule/{existing_meeting.id}",
        json={"status": "CANCELLED"},
        headers=headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"

    created = client.post("/api/admin/schedule", json=body, headers=headers)
    assert created.status_code == 201

    # the old meeting cannot come back on top of the new one
    revived = client.patch(
        f"/api/admin/schedule/{existing_meeting.id}",
        json={"status": "SCHEDULED"},
        headers=headers,
    )
    assert revived.status_code == 400
    assert revived.json() == {"error": 'Schedule conflicts with "Geometry" at 10:30'}


def test_reschedule_is_checked_against_other_meetings(client, db, factory, section, existing_meeting):
    other = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(13)))
    headers = auth_headers(factory.admin())
    url = f"/api/admin/schedule/{other.id}"

    clash = client.patch(url, json={"scheduled_at": next_monday(10, 30).isoformat()}, headers=headers)
    assert clash.status_code == 400
    db.refresh(other)
    assert other.scheduled_at == next_monday(13)

    # moving within its own slot does not conflict with itself
    moved = client.patch(url, json={"scheduled_at": next_monday(13, 30).isoformat(), "title": "Moved"}, headers=headers)
    assert moved.status_code == 200
    assert moved.json()["title"] == "Moved"
    db.refresh(other)
    assert other.scheduled_at == next_monday(13, 30)


def test_delete_meeting_removes_attendance(client, db, factory, section):
    factory.enrollment(section=section, status=EnrollmentStatus.ACTIVE)
    meeting = MeetingScheduler(db, section.id).schedule(meeting_in(section, next_monday(14)))
    headers = auth_headers(factory.admin())

    response = client.delete(f"/api/admin/schedule/{meeting.id}", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True}
    db.expire_all()
    assert db.query(ScheduledMeeting).count() == 0
    assert db.query(MeetingAttendance).count() == 0
    assert client.get(f"/api/admin/schedule/{meeting.id}", headers=headers).status_code == 404
