from pydantic import BaseModel, ConfigDict
from uuid import UUID
from typing import List, Optional
from datetime import datetime

from academy.models.enrollment import EnrollmentStatus
from academy.schemas.finance import PaymentResponse


class EnrollmentCreate(BaseModel):
    section_id: UUID


class EnrollmentResponse(BaseModel):
    id: UUID
    student_id: UUID
    section_id: Optional[UUID] = None
    status: EnrollmentStatus
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    grace_expiry_date: Optional[datetime] = None
    meetings_allowed: int = 0
    meetings_attended: int = 0
    total_meetings: int = 0
    meetings_remaining: int = 0
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SectionSummary(BaseModel):
    id: UUID
    name: str
    subject: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    enrollment: EnrollmentResponse
    section: Optional[SectionSummary] = None
    payment: Optional[PaymentResponse] = None


class ActivationResult(BaseModel):
    success: bool = True
    message: str
    activated_count: int
    errors: list = []


class QuotaDrift(BaseModel):
    enrollment_id: UUID
    student_name: str
    student_email: str
    class_name: str
    current_total: int
    current_remaining: int
    template_meetings: int
    status: EnrollmentStatus


class QuotaDriftPreview(BaseModel):
    total: int
    enrollments: List[QuotaDrift]


class QuotaUpdate(BaseModel):
    enrollment_id: UUID
    class_name: str
    old_total: int
    new_total: int


class QuotaSyncResult(BaseModel):
    success: bool = True
    message: str
    updated_count: int
    updates: List[QuotaUpdate]
