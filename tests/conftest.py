import json
import os
from datetime import time, timedelta

# Settings are read once at import time
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("PAYMENT_GATEWAY_PROJECT", "academy-test")
os.environ.setdefault("PAYMENT_GATEWAY_API_KEY", "test-api-key")
os.environ.setdefault("PAYMENT_GATEWAY_URL", "https://gateway.test")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import academy.models  # noqa: F401
from academy.core.database import Base, get_db
from academy.core.security import create_access_token
from academy.main import app
from academy.models import (
    ClassSection,
    ClassTemplate,
    Enrollment,
    EnrollmentStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentStatus,
    SectionStatus,
    Student,
    Tutor,
    TutorAvailability,
    User,
    UserRole,
)
from academy.services.gateway import PaymentGateway, get_payment_gateway
from academy.utils.time import utcnow

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


class GatewayStub:
    """Records what the app sends to the gateway and answers like it."""

    def __init__(self):
        self.requests = []
        self.fail_with = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        self.requests.append({"method": request.method, "path": request.url.path, "json": body})
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "gateway down"})
        if request.url.path.startswith("/api/transactioncreate/"):
            return httpx.Response(
                200,
                json={
                    "payment": {
                        "project": body["project"],
                        "order_id": body["order_id"],
                        "amount": body["amount"],
                        "payment_method": "qris",
                        "payment_number": f"QR-{body['order_id']}",
                    }
                },
            )
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def gateway_stub():
    return GatewayStub()


@pytest.fixture
def gateway(gateway_stub):
    client = httpx.Client(transport=httpx.MockTransport(gateway_stub.handler))
    yield PaymentGateway(
        base_url="https://gateway.test",
        project="academy-test",
        api_key="test-api-key",
        payment_method="qris",
        client=client,
    )
    client.close()


@pytest.fixture
def client(db, gateway):
    def override_get_db():
        try:
            yield db
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


class Factory:
    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, role=UserRole.STUDENT, **kwargs) -> User:
        n = self._next()
        user = User(
            email=kwargs.pop("email", f"user{n}@example.com"),
            name=kwargs.pop("name", f"User {n}"),
            role=role,
            **kwargs,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def admin(self) -> User:
        return self.user(role=UserRole.ADMIN, name="Admin")

    def student(self, **kwargs) -> Student:
        user = self.user(role=UserRole.STUDENT, **kwargs)
        student = Student(user_id=user.id)
        self.db.add(student)
        self.db.commit()
        return student

    def tutor(self, availability=None) -> Tutor:
        user = self.user(role=UserRole.TUTOR, name="Tutor")
        tutor = Tutor(user_id=user.id)
        self.db.add(tutor)
        self.db.flush()
        # Default: every day, 08:00-20:00
        for day, start, end in availability or [(d, time(8), time(20)) for d in range(7)]:
            self.db.add(
                TutorAvailability(tutor_id=tutor.id, day_of_week=day, start_time=start, end_time=end)
            )
        self.db.commit()
        return tutor

    def template(self, **kwargs) -> ClassTemplate:
        values = {
            "name": "Math Basics",
            "subject": "Math",
            "price_per_month": 250000,
            "meetings_per_period": 8,
            "max_students_per_section": 10,
            "grace_period_days": 7,
        }
        values.update(kwargs)
        template = ClassTemplate(**values)
        self.db.add(template)
        self.db.commit()
        return template

    def section(self, template=None, tutor=None, **kwargs) -> ClassSection:
        section = ClassSection(
            template_id=(template or self.template()).id,
            tutor_id=(tutor or self.tutor()).id,
            section_label=kwargs.pop("section_label", "A"),
            current_enrollments=kwargs.pop("current_enrollments", 0),
            status=kwargs.pop("status", SectionStatus.ACTIVE),
        )
        self.db.add(section)
        self.db.commit()
        return section

    def enrollment(self, student=None, section=None, status=EnrollmentStatus.PENDING, **kwargs) -> Enrollment:
        enrollment = Enrollment(
            student_id=(student or self.student()).id,
            section_id=section.id if section is not None else None,
            status=status,
            **kwargs,
        )
        self.db.add(enrollment)
        self.db.commit()
        return enrollment

    def invoice(self, enrollment, status=InvoiceStatus.UNPAID, amount=250000, **kwargs) -> Invoice:
        now = utcnow()
        n = self._next()
        invoice = Invoice(
            invoice_number=kwargs.pop("invoice_number", f"INV-TEST-{n:04d}"),
            enrollment_id=enrollment.id,
            student_name="Student",
            student_email="student@example.com",
            program_name="Math Basics",
            period_start=kwargs.pop("period_start", now),
            period_end=kwargs.pop("period_end", now + timedelta(days=30)),
            amount=amount,
            tax=0,
            discount=0,
            total_amount=amount,
            due_date=kwargs.pop("due_date", now + timedelta(hours=24)),
            status=status,
            **kwargs,
        )
        self.db.add(invoice)
        self.db.commit()
        return invoice

    def payment(self, enrollment, invoice=None, status=PaymentStatus.PENDING, **kwargs) -> Payment:
        payment = Payment(
            enrollment_id=enrollment.id,
            amount=kwargs.pop("amount", invoice.total_amount if invoice else 250000),
            order_id=kwargs.pop("order_id", invoice.invoice_number if invoice else None),
            redirect_url=kwargs.pop("redirect_url", "https://gateway.test/pay/academy-test"),
            status=status,
            **kwargs,
        )
        self.db.add(payment)
        self.db.flush()
        if invoice is not None:
            invoice.payment_id = payment.id
        self.db.commit()
        return payment


@pytest.fixture
def factory(db):
    return Factory(db)
