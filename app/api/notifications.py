import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.database import get_db
from app.models.users import User
from app.schemas.issues import NotificationEnvelope, NotificationList
from app.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
def list_notifications(
    unread: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    notifications = notification_service.list_notifications(
        db, current_user.id, unread_only=unread
    )
    return {"notifications": notifications}


@router.patch("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, int]:
    return {"updated": notification_service.mark_all_read(db, current_user.id)}


@router.patch("/{notification_id}/read", response_model=NotificationEnvelope)
def mark_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    notification = notification_service.mark_read(db, current_user.id, notification_id)
    return {"notification": notification}
