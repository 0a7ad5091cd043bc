import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_workspace_member
from app.core.config import get_settings
from app.core.database import get_db
from app.models.users import User
from app.models.workspaces import WorkspaceMember
from app.schemas.common import WorkspaceRole
from app.schemas.workspaces import (
    InviteOut,
    MemberEnvelope,
    MemberList,
    MemberOverview,
    RoleUpdate,
    WorkspaceCreate,
    WorkspaceJoin,
    WorkspaceList,
    WorkspaceListItem,
    WorkspaceMembership,
    WorkspaceOut,
)
from app.services import workspace_service

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])
settings = get_settings()


@router.get("", response_model=WorkspaceList)
def list_workspaces(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WorkspaceList:
    rows = workspace_service.list_workspaces(db, current_user)
    return WorkspaceList(
        workspaces=[
            WorkspaceListItem(
                id=workspace.id,
                name=workspace.name,
                key=workspace.key,
                owner_id=workspace.owner_id,
                created_at=workspace.created_at,
                role=role,
            )
            for workspace, role in rows
        ]
    )


@router.post(
    "",
    response_model=WorkspaceMembership,
    status_code=status.HTTP_201_CREATED,
)
def create_workspace(
    payload: WorkspaceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WorkspaceMembership:
    workspace = workspace_service.create_workspace(
        db, current_user, payload.name, payload.key
    )
    return WorkspaceMembership(
        workspace=WorkspaceOut.model_validate(workspace),
        role=WorkspaceRole.OWNER,
    )


@router.post("/join", response_model=WorkspaceMembership)
def join_workspace(
    payload: WorkspaceJoin,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WorkspaceMembership:
    member = workspace_service.join_workspace(db, current_user, payload.code)
    return WorkspaceMembership(
        workspace=WorkspaceOut.model_validate(member.workspace),
        role=member.role,
    )


@router.get("/{workspace_id}/members", response_model=MemberList)
def list_members(
    workspace_id: uuid.UUID,
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    return {"members": workspace_service.list_members(db, workspace_id)}


@router.patch("/{workspace_id}/members/{member_id}", response_model=MemberEnvelope)
def update_member_role(
    workspace_id: uuid.UUID,
    member_id: uuid.UUID,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    member = workspace_service.update_member_role(
        db, workspace_id, current_user, member_id, payload.role
    )
    return {"member": member}


@router.get(
    "/{workspace_id}/members/{member_id}/overview",
    response_model=MemberOverview,
)
def member_overview(
    workspace_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    member: WorkspaceMember = Depends(get_workspace_member),
) -> dict:
    target = workspace_service.get_member(db, workspace_id, member_id)
    return workspace_service.member_overview(db, workspace_id, target)


@router.post(
    "/{workspace_id}/invite",
    response_model=InviteOut,
    status_code=status.HTTP_201_CREATED,
)
def create_invite(
    workspace_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> InviteOut:
    invite = workspace_service.create_invite(db, workspace_id, current_user)
    return InviteOut(
        invite_code=invite.code,
        invite_link=f"{settings.app_base_url.rstrip('/')}/join?code={invite.code}",
        expires_at=invite.expires_at,
    )
