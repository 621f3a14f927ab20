from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from typing import List, Optional
from datetime import datetime

from academy.models.meetings import AttendanceStatus, MeetingStatus


class MeetingCreate(BaseModel):
    section_id: UUID
    title: str = Field(min_length=1)
    description: Optional[str] = None
    scheduled_at: datetime
    duration: int = Field(gt=0, le=600)  # minutes
    meeting_url: Optional[str] = None


class MeetingResponse(BaseModel):
    id: UUID
    section_id: UUID
    title: str
    description: Optional[str] = None
    scheduled_at: datetime
    duration: int
    meeting_url: Optional[str] = None
    status: MeetingStatus
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    attendance_count: int = 0
    model_config = ConfigDict(from_attributes=True)


class MeetingUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0, le=600)
    meeting_url: Optional[str] = None
    status: Optional[MeetingStatus] = None


class AttendanceResponse(BaseModel):
    id: UUID
    enrollment_id: UUID
    status: AttendanceStatus
    model_config = ConfigDict(from_attributes=True)


class MeetingDetail(MeetingResponse):
    attendances: List[AttendanceResponse] = []
