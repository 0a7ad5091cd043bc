import json
import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field, StringConstraints, field_validator

from app.schemas.common import (
    ApiModel,
    IssuePriority,
    IssueStatus,
    PatchModel,
    UserSummary,
)
from app.schemas.workspaces import IssueSummary

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class IssueCreate(ApiModel):
    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]
    description: str = ""
    status: str | None = None
    priority: str | None = None
    labels: list[str] = Field(default_factory=list)
    assignee_id: uuid.UUID | None = None
    due_date: datetime | None = None


class IssueUpdate(PatchModel):
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    labels: list[str] | None = None
    assignee_id: uuid.UUID | None = None
    due_date: datetime | None = None


class IssueOut(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    ticket_id: str
    title: str
    description: str
    status: IssueStatus
    priority: IssuePriority
    labels: list[str]
    assignee: UserSummary | None = Field(default=None, alias="assigneeId")
    created_by: UserSummary | None = None
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class IssueEnvelope(ApiModel):
    issue: IssueOut


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class IssueList(ApiModel):
    issues: list[IssueOut]
    pagination: Pagination


class ArticleCreate(ApiModel):
    title: str = ""
    body: str = ""
    linked_issue_ids: list[str] = Field(default_factory=list)


class ArticleUpdate(PatchModel):
    title: str | None = None
    body: str | None = None
    linked_issue_ids: list[str] | None = None


class ArticleOut(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    kb_id: str
    title: str
    body: str
    linked_issue_ids: list[uuid.UUID]
    created_by: UserSummary | None = None
    updated_by: UserSummary | None = None
    created_at: datetime
    updated_at: datetime


class ArticleEnvelope(ApiModel):
    article: ArticleOut


class ArticleList(ApiModel):
    articles: list[ArticleOut]


class CommentCreate(BaseModel):
    body: RequiredText


class CommentOut(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    body: str
    user: UserSummary = Field(alias="userId")
    created_at: datetime


class CommentEnvelope(ApiModel):
    comment: CommentOut


class CommentList(ApiModel):
    comments: list[CommentOut]


class NotificationOut(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    type: str
    message: str
    issue_id: uuid.UUID | None = None
    read_at: datetime | None = None
    created_at: datetime


class NotificationEnvelope(ApiModel):
    notification: NotificationOut


class NotificationList(ApiModel):
    notifications: list[NotificationOut]


class ActivityOut(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    action: str
    actor: UserSummary | None = Field(default=None, alias="actorId")
    issue: IssueSummary | None = Field(default=None, alias="issueId")
    meta: dict[str, Any] | None = None
    created_at: datetime

    @field_validator("meta", mode="before")
    @classmethod
    def parse_meta(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value) if value else None
        return value


class ActivityList(ApiModel):
    activities: list[ActivityOut]
