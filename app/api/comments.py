import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.database import get_db
from app.models.users import User
from app.schemas.issues import CommentCreate, CommentEnvelope, CommentList
from app.services import comment_service
from app.services.realtime_service import RealtimePublisher, get_realtime

router = APIRouter(prefix="/api/issues/{issue_id}/comments", tags=["comments"])


@router.get("", response_model=CommentList)
def list_comments(
    issue_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    issue = comment_service.load_issue_for_user(db, issue_id, current_user)
    return {"comments": comment_service.list_comments(db, issue)}


@router.post("", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
def add_comment(
    issue_id: uuid.UUID,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> dict:
    issue = comment_service.load_issue_for_user(db, issue_id, current_user)
    comment = comment_service.add_comment(db, realtime, issue, current_user, payload.body)
    return {"comment": comment}
