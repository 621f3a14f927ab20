import math

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from academy.api.deps import require_admin
from academy.core.database import get_db
from academy.models.finance import InvoiceStatus
from academy.models.programs import WaitingListStatus
from academy.models.users import User
from academy.schemas import enrollment as enrollment_schemas
from academy.schemas import finance as finance_schemas
from academy.schemas import meetings as meeting_schemas
from academy.schemas import programs as program_schemas
from academy.services import enrollments, invoices, scheduling, sections, waiting_list
from academy.services.checkout import invoice_enrollment
from academy.services.gateway import PaymentGateway, get_payment_gateway
from academy.services.scheduling import MeetingScheduler

router = APIRouter(dependencies=[Depends(require_admin)])

# --- Schedule ---

@router.get("/schedule", response_model=List[meeting_schemas.MeetingResponse])
def get_schedule(section_id: Optional[UUID] = None, db: Session = Depends(get_db)):
    return scheduling.list_meetings(db, section_id)


@router.post(
    "/schedule",
    response_model=meeting_schemas.MeetingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_meeting(
    meeting_in: meeting_schemas.MeetingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    scheduler = MeetingScheduler(db, meeting_in.section_id)
    return scheduler.schedule(meeting_in, created_by=str(current_user.id))


@router.get("/schedule/{meeting_id}", response_model=meeting_schemas.MeetingDetail)
def get_meeting(meeting_id: UUID, db: Session = Depends(get_db)):
    return scheduling.get_meeting(db, meeting_id)


@router.patch("/schedule/{meeting_id}", response_model=meeting_schemas.MeetingResponse)
def update_meeting(
    meeting_id: UUID,
    meeting_update: meeting_schemas.MeetingUpdate,
    db: Session = Depends(get_db),
):
    return scheduling.update_meeting(db, meeting_id, meeting_update.model_dump(exclude_unset=True))


@router.delete("/schedule/{meeting_id}")
def delete_meeting(meeting_id: UUID, db: Session = Depends(get_db)):
    scheduling.delete_meeting(db, meeting_id)
    return {"success": True}

# --- Invoices ---

@router.get("/invoices", response_model=finance_schemas.InvoiceList)
def list_invoices(
    status: Optional[InvoiceStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    items, total = invoices.list_invoices(db, status=status, page=page, limit=limit)
    return {
        "invoices": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }


@router.post(
    "/invoices",
    response_model=finance_schemas.InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_invoice(
    invoice_in: finance_schemas.InvoiceCreate,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return invoice_enrollment(
        db,
        invoice_in.enrollment_id,
        gateway,
        amount=invoice_in.amount,
        due_date=invoice_in.due_date,
        notes=invoice_in.notes,
    )


@router.get("/invoices/{invoice_id}", response_model=finance_schemas.InvoiceResponse)
def get_invoice(invoice_id: UUID, db: Session = Depends(get_db)):
    return invoices.get_invoice(db, invoice_id)


@router.patch("/invoices/{invoice_id}", response_model=finance_schemas.InvoiceResponse)
def update_invoice(
    invoice_id: UUID,
    invoice_update: finance_schemas.InvoiceUpdate,
    db: Session = Depends(get_db),
):
    return invoices.update_invoice(db, invoice_id, invoice_update.model_dump(exclude_unset=True))


@router.delete("/invoices/{invoice_id}", response_model=finance_schemas.InvoiceResponse)
def cancel_invoice(invoice_id: UUID, db: Session = Depends(get_db)):
    return invoices.cancel_invoice(db, invoice_id)

# --- Waiting list ---

@router.get("/waiting-list", response_model=List[program_schemas.WaitingListEntry])
def get_waiting_list(
    status: Optional[WaitingListStatus] = None,
    db: Session = Depends(get_db),
):
    return waiting_list.list_entries(db, status)


@router.post(
    "/waiting-list/{entry_id}/approve",
    response_model=program_schemas.WaitingListApproval,
)
def approve_waiting_list(
    entry_id: UUID,
    approval: program_schemas.WaitingListApprove,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    result = waiting_list.approve_entry(db, entry_id, approval.section_id, gateway)
    entry = result["entry"]
    response = program_schemas.WaitingListResponse.model_validate(entry).model_dump()
    return program_schemas.WaitingListApproval(
        **response,
        enrollment_id=result["enrollment"].id,
        invoice_number=result["invoice"].invoice_number,
        payment_url=result["payment"].redirect_url,
    )


@router.post(
    "/waiting-list/{entry_id}/reject",
    response_model=program_schemas.WaitingListResponse,
)
def reject_waiting_list(
    entry_id: UUID,
    rejection: program_schemas.WaitingListReject,
    db: Session = Depends(get_db),
):
    return waiting_list.reject_entry(db, entry_id, rejection.rejection_note)

# --- Sections ---

@router.get("/sections/sync-enrollments", response_model=program_schemas.SectionDriftPreview)
def preview_enrollment_sync(db: Session = Depends(get_db)):
    drift = sections.find_counter_drift(db)
    return {"total": len(drift), "sections": drift}


@router.post("/sections/sync-enrollments", response_model=program_schemas.SectionSyncResult)
def sync_enrollments(db: Session = Depends(get_db)):
    updates = sections.sync_enrollment_counts(db)
    return {
        "success": True,
        "message": f"Updated {len(updates)} section(s)",
        "updated_count": len(updates),
        "updates": updates,
    }

# --- Enrollments ---

@router.get(
    "/enrollments/sync-meetings",
    response_model=enrollment_schemas.QuotaDriftPreview,
)
def preview_meeting_sync(db: Session = Depends(get_db)):
    drift = enrollments.find_quota_drift(db)
    return {"total": len(drift), "enrollments": drift}


@router.post(
    "/enrollments/sync-meetings",
    response_model=enrollment_schemas.QuotaSyncResult,
)
def sync_meetings(db: Session = Depends(get_db)):
    updates = enrollments.sync_meeting_quotas(db)
    return {
        "success": True,
        "message": f"Synced {len(updates)} enrollment(s)",
        "updated_count": len(updates),
        "updates": updates,
    }
