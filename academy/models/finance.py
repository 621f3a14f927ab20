from sqlalchemy import (
    Column,
    String,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
import uuid
import enum

from academy.core.database import Base
from academy.utils.time import utcnow


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"


class InvoiceStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(Uuid, ForeignKey("enrollments.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    payment_method = Column(String, nullable=True)
    order_id = Column(String, unique=True, index=True, nullable=True)
    session_token = Column(String, nullable=True)
    redirect_url = Column(String, nullable=True)
    expired_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    enrollment = relationship("Enrollment", back_populates="payments")
    invoice = relationship("Invoice", back_populates="payment", uselist=False)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String, unique=True, index=True, nullable=False)  # INV-YYYYMMDD-XXXX
    enrollment_id = Column(Uuid, ForeignKey("enrollments.id"), nullable=False, index=True)
    payment_id = Column(Uuid, ForeignKey("payments.id"), unique=True, nullable=True)

    # Snapshot taken when the invoice is issued
    student_name = Column(String, nullable=False)
    student_email = Column(String, nullable=False)
    student_phone = Column(String, nullable=True)
    program_name = Column(String, nullable=False)
    section_label = Column(String, nullable=True)

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    amount = Column(Integer, nullable=False)
    tax = Column(Integer, nullable=False, default=0)
    discount = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)
    due_date = Column(DateTime, nullable=False)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.UNPAID, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    enrollment = relationship("Enrollment", back_populates="invoices")
    payment = relationship("Payment", back_populates="invoice")


class WebhookEvent(Base):
    """One row per applied gateway callback; replays hit the unique key."""

    __tablename__ = "webhook_events"
    __table_args__ = (
        UniqueConstraint("order_id", "status", name="uq_webhook_events_order_status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    payload = Column(JSON, nullable=True)
    outcome = Column(String, nullable=False)
    received_at = Column(DateTime, default=utcnow)
