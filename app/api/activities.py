import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_workspace_member
from app.core.database import get_db
from app.models.workspaces import WorkspaceMember
from app.schemas.issues import ActivityList
from app.services import activity_service

router = APIRouter(prefix="/api/workspaces/{workspace_id}/activities", tags=["activities"])


@router.get("", response_model=ActivityList)
def list_activities(
    workspace_id: uuid.UUID,
    limit: int = activity_service.DEFAULT_LIMIT,
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    return {"activities": activity_service.list_activities(db, workspace_id, limit)}
