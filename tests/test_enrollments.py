from academy.models import EnrollmentStatus, PaymentStatus, SectionStatus
from academy.services.enrollments import sync_meeting_quotas
from tests.conftest import auth_headers


def test_student_enrolls_into_open_section(client, db, factory):
    student = factory.student()
    section = factory.section(current_enrollments=3)

    response = client.post(
        "/api/enrollments",
        json={"section_id": str(section.id)},
        headers=auth_headers(student.user),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["meetings_allowed"] == 8
    db.refresh(section)
    assert section.current_enrollments == 4


def test_enrolling_the_last_seat_fills_section(client, db, factory):
    student = factory.student()
    section = factory.section(template=factory.template(max_students_per_section=1))

    client.post("/api/enrollments", json={"section_id": str(section.id)}, headers=auth_headers(student.user))

    db.refresh(section)
    assert section.status == SectionStatus.FULL


def test_cannot_enroll_twice(client, factory):
    student = factory.student()
    section = factory.section()
    headers = auth_headers(student.user)

    client.post("/api/enrollments", json={"section_id": str(section.id)}, headers=headers)
    response = client.post("/api/enrollments", json={"section_id": str(section.id)}, headers=headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Already enrolled in this section"}


def test_full_section_rejects_signup(client, factory):
    student = factory.student()
    # counter says full even though the status was never flipped
    section = factory.section(template=factory.template(max_students_per_section=2), current_enrollments=2)

    response = client.post(
        "/api/enrollments",
        json={"section_id": str(section.id)},
        headers=auth_headers(student.user),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Section is full"}


def test_closed_section_rejects_signup(client, factory):
    student = factory.student()
    section = factory.section(status=SectionStatus.CLOSED)

    response = client.post(
        "/api/enrollments",
        json={"section_id": str(section.id)},
        headers=auth_headers(student.user),
    )

    assert response.status_code == 400


def test_tutor_cannot_enroll(client, factory):
    tutor = factory.tutor()
    section = factory.section()
    response = client.post(
        "/api/enrollments",
        json={"section_id": str(section.id)},
        headers=auth_headers(tutor.user),
    )
    assert response.status_code == 403


def test_payment_status_for_owner_and_admin(client, factory):
    enrollment = factory.enrollment(section=factory.section())
    factory.payment(enrollment, status=PaymentStatus.PENDING)
    url = f"/api/payments/status?enrollment_id={enrollment.id}"

    owner = client.get(url, headers=auth_headers(enrollment.student.user))
    assert owner.status_code == 200
    assert owner.json()["enrollment"]["status"] == EnrollmentStatus.PENDING.value
    assert owner.json()["payment"]["status"] == "PENDING"
    assert owner.json()["section"]["name"] == "Math Basics - Section A"

    assert client.get(url, headers=auth_headers(factory.admin())).status_code == 200
    assert client.get(url, headers=auth_headers(factory.student().user)).status_code == 404


def test_invalid_token_is_forbidden(client):
    response = client.get(
        "/api/payments/status?enrollment_id=00000000-0000-0000-0000-000000000000",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 403


def test_sync_meeting_quotas_keeps_used_meetings(client, db, factory):
    section = factory.section(template=factory.template(meetings_per_period=12))
    # 3 of 8 meetings used before the program moved to 12
    used = factory.enrollment(
        section=section,
        status=EnrollmentStatus.ACTIVE,
        total_meetings=8,
        meetings_allowed=8,
        meetings_remaining=5,
    )
    in_sync = factory.enrollment(
        section=section,
        status=EnrollmentStatus.ACTIVE,
        total_meetings=12,
        meetings_remaining=12,
    )
    closed = factory.enrollment(
        section=section,
        status=EnrollmentStatus.CANCELLED,
        total_meetings=8,
        meetings_remaining=8,
    )
    headers = auth_headers(factory.admin())

    preview = client.get("/api/admin/enrollments/sync-meetings", headers=headers)
    assert preview.status_code == 200
    assert preview.json()["total"] == 1
    assert preview.json()["enrollments"][0]["enrollment_id"] == str(used.id)
    assert preview.json()["enrollments"][0]["template_meetings"] == 12

    response = client.post("/api/admin/enrollments/sync-meetings", headers=headers)

    assert response.status_code == 200
    assert response.json()["updated_count"] == 1
    assert response.json()["updates"][0]["old_total"] == 8
    for enrollment in (used, in_sync, closed):
        db.refresh(enrollment)
    assert used.total_meetings == 12
    assert used.meetings_remaining == 9
    assert in_sync.meetings_remaining == 12
    assert closed.total_meetings == 8


def test_sync_meeting_quotas_never_goes_negative(db, factory):
    section = factory.section(template=factory.template(meetings_per_period=4))
    enrollment = factory.enrollment(
        section=section,
        status=EnrollmentStatus.ACTIVE,
        total_meetings=8,
        meetings_remaining=1,
    )

    sync_meeting_quotas(db)

    db.refresh(enrollment)
    assert enrollment.total_meetings == 4
    assert enrollment.meetings_remaining == 0
