import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_workspace_member
from app.core.database import get_db
from app.models.users import User
from app.models.workspaces import WorkspaceMember
from app.schemas.common import OkOut
from app.schemas.issues import IssueCreate, IssueEnvelope, IssueList, IssueUpdate
from app.services import issue_service
from app.services.issue_service import IssueFilters
from app.services.realtime_service import RealtimePublisher, get_realtime
from app.services.workspace_service import ANY_ROLE, MANAGERS, require_role

router = APIRouter(prefix="/api/workspaces/{workspace_id}/issues", tags=["issues"])


@router.get("", response_model=IssueList)
def list_issues(
    workspace_id: uuid.UUID,
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = None,
    assignee_id: uuid.UUID | None = Query(default=None, alias="assigneeId"),
    ticket_id: str | None = Query(default=None, alias="ticketId"),
    q: str | None = None,
    page: int = 1,
    limit: int = issue_service.DEFAULT_LIMIT,
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    page = max(page, 1)
    limit = max(1, min(limit, issue_service.MAX_LIMIT))
    filters = IssueFilters(
        status=status_filter,
        priority=priority,
        assignee_id=assignee_id,
        ticket_id=ticket_id,
        q=q,
        page=page,
        limit=limit,
    )
    issues, total = issue_service.list_issues(db, workspace_id, filters)
    return {
        "issues": issues,
        "pagination": {"page": page, "limit": limit, "total": total},
    }


@router.post("", response_model=IssueEnvelope, status_code=status.HTTP_201_CREATED)
def create_issue(
    workspace_id: uuid.UUID,
    payload: IssueCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    member: WorkspaceMember = Depends(get_workspace_member),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> dict:
    require_role(member, ANY_ROLE)
    issue = issue_service.create_issue(db, realtime, workspace_id, current_user, payload)
    return {"issue": issue}


@router.get("/{issue_id}", response_model=IssueEnvelope)
def get_issue(
    workspace_id: uuid.UUID,
    issue_id: uuid.UUID,
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    return {"issue": issue_service.get_issue(db, workspace_id, issue_id)}


@router.patch("/{issue_id}", response_model=IssueEnvelope)
def update_issue(
    workspace_id: uuid.UUID,
    issue_id: uuid.UUID,
    payload: IssueUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    member: WorkspaceMember = Depends(get_workspace_member),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> dict:
    require_role(member, ANY_ROLE)
    issue = issue_service.update_issue(
        db, realtime, workspace_id, current_user, issue_id, payload
    )
    return {"issue": issue}


@router.delete("/{issue_id}", response_model=OkOut)
def delete_issue(
    workspace_id: uuid.UUID,
    issue_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    member: WorkspaceMember = Depends(get_workspace_member),
    realtime: RealtimePublisher = Depends(get_realtime),
) -> OkOut:
    require_role(member, MANAGERS)
    issue_service.delete_issue(db, realtime, workspace_id, current_user, issue_id)
    return OkOut()
