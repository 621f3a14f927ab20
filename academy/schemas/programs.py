from pydantic import BaseModel, ConfigDict
from uuid import UUID
from typing import List, Optional
from datetime import datetime

from academy.models.programs import SectionStatus, WaitingListStatus


class WaitingListApprove(BaseModel):
    section_id: UUID


class WaitingListReject(BaseModel):
    rejection_note: Optional[str] = None


class WaitingListResponse(BaseModel):
    id: UUID
    student_id: UUID
    template_id: UUID
    assigned_section_id: Optional[UUID] = None
    status: WaitingListStatus
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_note: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class WaitingListApproval(WaitingListResponse):
    enrollment_id: UUID
    invoice_number: str
    payment_url: str


class SectionDrift(BaseModel):
    section_id: UUID
    section_name: str
    tutor_name: str
    current_field: int
    actual_count: int
    status: SectionStatus


class SectionDriftPreview(BaseModel):
    total: int
    sections: List[SectionDrift]


class SectionCounterUpdate(BaseModel):
    section_id: UUID
    section_name: str
    old_count: int
    new_count: int


class SectionSyncResult(BaseModel):
    success: bool = True
    message: str
    updated_count: int
    updates: List[SectionCounterUpdate]


class OpenSection(BaseModel):
    id: UUID
    name: str
    subject: Optional[str] = None


class WaitingListEntry(WaitingListResponse):
    created_at: Optional[datetime] = None
    student_name: str
    student_email: str
    student_phone: Optional[str] = None
    program_name: str
    open_sections: List[OpenSection] = []
