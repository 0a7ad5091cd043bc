import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

from app.schemas.common import (
    ApiModel,
    IssueStatus,
    UserSummary,
    WorkspaceRole,
)

WorkspaceKey = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        to_upper=True,
        min_length=2,
        max_length=10,
        pattern=r"^[A-Za-z0-9]+$",
    ),
]


class WorkspaceCreate(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
    key: WorkspaceKey


class WorkspaceJoin(BaseModel):
    code: Annotated[str, StringConstraints(strip_whitespace=True, min_length=4)]


class RoleUpdate(BaseModel):
    role: WorkspaceRole


class WorkspaceOut(ApiModel):
    id: uuid.UUID
    name: str
    key: str
    owner_id: uuid.UUID
    created_at: datetime


class WorkspaceListItem(WorkspaceOut):
    role: WorkspaceRole


class WorkspaceList(ApiModel):
    workspaces: list[WorkspaceListItem]


class WorkspaceMembership(ApiModel):
    workspace: WorkspaceOut
    role: WorkspaceRole


class MemberOut(ApiModel):
    id: uuid.UUID
    role: WorkspaceRole
    user: UserSummary


class MemberList(ApiModel):
    members: list[MemberOut]


class MemberEnvelope(ApiModel):
    member: MemberOut


class InviteOut(ApiModel):
    invite_code: str
    invite_link: str
    expires_at: datetime


class IssueSummary(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    ticket_id: str
    title: str
    status: IssueStatus


class ArticleSummary(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    kb_id: str
    title: str
    updated_at: datetime


class MemberStats(ApiModel):
    issues_created: int
    issues_assigned: int
    kb_worked_on: int


class MemberRecent(ApiModel):
    issues_created: list[IssueSummary]
    issues_assigned: list[IssueSummary]
    kb_worked_on: list[ArticleSummary]


class MemberOverview(ApiModel):
    member: MemberOut
    stats: MemberStats
    recent: MemberRecent
