from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from academy.api.deps import require_student
from academy.core.database import get_db
from academy.models.users import User
from academy.schemas import enrollment as schemas
from academy.services import enrollments

router = APIRouter()


@router.post("", response_model=schemas.EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll(
    enrollment_in: schemas.EnrollmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return enrollments.enroll_student(db, current_user, enrollment_in.section_id)
