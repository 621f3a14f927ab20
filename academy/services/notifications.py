from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from academy.models.communication import Notification, NotificationType


def notify(
    db: Session,
    user_id: UUID,
    title: str,
    message: str,
    type: NotificationType = NotificationType.SYSTEM,
    link: Optional[str] = None,
) -> Notification:
    """Queue a notification on the session; the caller owns the commit."""
    notification = Notification(
        user_id=user_id, title=title, message=message, type=type, link=link
    )
    db.add(notification)
    return notification
