import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_workspace_member
from app.core.database import get_db
from app.models.users import User
from app.models.workspaces import WorkspaceMember
from app.schemas.common import OkOut
from app.schemas.issues import ArticleCreate, ArticleEnvelope, ArticleList, ArticleUpdate
from app.services import article_service
from app.services.realtime_service import RealtimePublisher, get_realtime
from app.services.workspace_service import ANY_ROLE, MANAGERS, require_role

router = APIRouter(prefix="/api/workspaces/{workspace_id}/articles", tags=["articles"])


@router.get("", response_model=ArticleList)
def list_articles(
    workspace_id: uuid.UUID,
    issue_id: uuid.UUID | None = Query(default=None, alias="issueId"),
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    return {"articles": article_service.list_articles(db, workspace_id, issue_id)}


@router.post("", response_model=ArticleEnvelope, status_code=status.HTTP_201_CREATED)
def create_article(
    workspace_id: uuid.UUID,
    payload: ArticleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    member: WorkspaceMember = Depends(get_workspace_member),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> dict:
    require_role(member, ANY_ROLE)
    article = article_service.create_article(
        db, realtime, workspace_id, current_user, payload
    )
    return {"article": article}


@router.get("/{article_id}", response_model=ArticleEnvelope)
def get_article(
    workspace_id: uuid.UUID,
    article_id: uuid.UUID,
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    return {"article": article_service.get_article(db, workspace_id, article_id)}


@router.patch("/{article_id}", response_model=ArticleEnvelope)
def update_article(
    workspace_id: uuid.UUID,
    article_id: uuid.UUID,
    payload: ArticleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    member: WorkspaceMember = Depends(get_workspace_member),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> dict:
    require_role(member, ANY_ROLE)
    article = article_service.update_article(
        db, realtime, workspace_id, current_user, article_id, payload
    )
    return {"article": article}


@router.delete("/{article_id}", response_model=OkOut)
def delete_article(
    workspace_id: uuid.UUID,
    article_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    member: WorkspaceMember = Depends(get_workspace_member),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> OkOut:
    require_role(member, MANAGERS)
    article_service.delete_article(db, realtime, workspace_id, current_user, article_id)
    return OkOut()
