from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID

from academy.api.deps import get_current_user, verify_cron_secret
from academy.core.database import get_db
from academy.models.users import User
from academy.schemas import finance as schemas
from academy.schemas.enrollment import ActivationResult, PaymentStatusResponse
from academy.services import checkout, cron, enrollments, webhook
from academy.services.gateway import PaymentGateway, get_payment_gateway

router = APIRouter()


@router.post("/create", response_model=schemas.CheckoutResponse)
def create_payment(
    request: schemas.CheckoutRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user),
):
    return checkout.create_checkout(db, request.enrollment_id, gateway, user=current_user)


@router.post("/webhook", response_model=schemas.WebhookResponse)
def payment_webhook(
    payload: schemas.WebhookPayload,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    # Public endpoint, called by the gateway
    return webhook.process_webhook(db, payload, gateway)


@router.get("/webhook", include_in_schema=False)
def payment_webhook_get():
    raise HTTPException(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, detail="Method not allowed")


@router.get("/status", response_model=PaymentStatusResponse)
def payment_status(
    enrollment_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return enrollments.get_payment_status(db, current_user, enrollment_id)


@router.post(
    "/activate",
    response_model=ActivationResult,
    dependencies=[Depends(verify_cron_secret)],
)
def activate_paid(db: Session = Depends(get_db)):
    result = cron.activate_paid_enrollments(db)
    return ActivationResult(
        success=True,
        message=f"Activated {result.processed} enrollment(s)",
        activated_count=result.processed,
        errors=result.errors,
    )
