from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from typing import List, Optional
from datetime import datetime

from academy.models.finance import InvoiceStatus, PaymentStatus


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    project: str
    order_id: str
    amount: int
    status: str
    payment_method: Optional[str] = None
    completed_at: Optional[datetime] = None


class WebhookResponse(BaseModel):
    success: bool
    message: str


class CheckoutRequest(BaseModel):
    enrollment_id: UUID


class PaymentResponse(BaseModel):
    id: UUID
    enrollment_id: UUID
    amount: int
    payment_method: Optional[str] = None
    order_id: Optional[str] = None
    session_token: Optional[str] = None
    redirect_url: Optional[str] = None
    expired_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    status: PaymentStatus
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class InvoiceSummary(BaseModel):
    id: UUID
    invoice_number: str
    total_amount: int
    model_config = ConfigDict(from_attributes=True)


class CheckoutResponse(BaseModel):
    success: bool = True
    invoice: InvoiceSummary
    payment: PaymentResponse


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    enrollment_id: UUID
    payment_id: Optional[UUID] = None
    student_name: str
    student_email: str
    student_phone: Optional[str] = None
    program_name: str
    section_label: Optional[str] = None
    period_start: datetime
    period_end: datetime
    amount: int
    tax: int
    discount: int
    total_amount: int
    due_date: datetime
    status: InvoiceStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    payment: Optional[PaymentResponse] = None
    model_config = ConfigDict(from_attributes=True)


class InvoiceUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    discount: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None


class InvoiceCreate(BaseModel):
    enrollment_id: UUID
    amount: int = Field(gt=0)
    due_date: Optional[datetime] = None
    notes: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class InvoiceList(BaseModel):
    invoices: List[InvoiceResponse]
    pagination: Pagination
