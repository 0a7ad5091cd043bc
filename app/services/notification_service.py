import uuid

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.timeutils import utcnow
from app.models.activity import Notification
from app.services.realtime_service import RealtimePublisher

LIST_LIMIT = 50


def create_notification(
    db: Session,
    realtime: RealtimePublisher,
    user_id: uuid.UUID,
    type: str,
    message: str,
    workspace_id: uuid.UUID | None = None,
    issue_id: uuid.UUID | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        message=message,
        workspace_id=workspace_id,
        issue_id=issue_id,
    )
    db.add(notification)
    db.flush()
    realtime.to_user(
        user_id,
        "notification_created",
        {"notificationId": notification.id, "message": message},
    )
    return notification


def list_notifications(
    db: Session, user_id: uuid.UUID, unread_only: bool = False
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read_at.is_(None))
    stmt = stmt.order_by(Notification.created_at.desc()).limit(LIST_LIMIT)
    return list(db.execute(stmt).scalars())


def mark_read(db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
    notification = db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    ).scalar_one_or_none()
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    if notification.read_at is None:
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: uuid.UUID) -> int:
    result = db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.read_at.is_(None),
        )
        .values(read_at=utcnow())
    )
    db.commit()
    return result.rowcount
