from academy.schemas.finance import (
    WebhookPayload,
    WebhookResponse,
    CheckoutRequest,
    CheckoutResponse,
    PaymentResponse,
    InvoiceResponse,
    InvoiceUpdate,
)
from academy.schemas.enrollment import (
    EnrollmentCreate,
    EnrollmentResponse,
    PaymentStatusResponse,
    ActivationResult,
)
from academy.schemas.meetings import MeetingCreate, MeetingResponse
from academy.schemas.cron import CronResult, DailyCronResult
from academy.schemas.programs import (
    WaitingListApprove,
    WaitingListReject,
    WaitingListResponse,
    WaitingListApproval,
    SectionDriftPreview,
    SectionSyncResult,
)
