from academy.core.database import Base
from academy.models.users import User, UserRole, Student, Tutor, TutorAvailability
from academy.models.programs import (
    ClassTemplate,
    ClassSection,
    SectionStatus,
    WaitingList,
    WaitingListStatus,
)
from academy.models.enrollment import Enrollment, EnrollmentStatus, SEAT_HOLDING_STATUSES
from academy.models.finance import (
    Payment,
    PaymentStatus,
    Invoice,
    InvoiceStatus,
    WebhookEvent,
)
from academy.models.meetings import (
    ScheduledMeeting,
    MeetingStatus,
    MeetingAttendance,
    AttendanceStatus,
)
from academy.models.communication import Notification, NotificationType
