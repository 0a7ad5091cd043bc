import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from app.core.timeutils import ensure_utc
from app.models.issues import Article, Comment, Issue, article_issue_links
from app.models.users import User
from app.models.workspaces import Workspace, WorkspaceMember
from app.schemas.common import IssuePriority, IssueStatus
from app.schemas.issues import IssueCreate, IssueUpdate
from app.services import activity_service, notification_service
from app.services.realtime_service import RealtimePublisher

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 50


@dataclass
class IssueFilters:
    status: str | None = None
    priority: str | None = None
    assignee_id: uuid.UUID | None = None
    ticket_id: str | None = None
    q: str | None = None
    page: int = 1
    limit: int = DEFAULT_LIMIT


def parse_status(value: str | None) -> IssueStatus:
    try:
        return IssueStatus((value or "").strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status",
        )


def parse_priority(value: str | None) -> IssuePriority:
    try:
        return IssuePriority((value or "").strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid priority",
        )


def next_counter(db: Session, workspace_id: uuid.UUID, column: str) -> tuple[str, int]:
    """Atomically bump a workspace counter and return ``(key, new_value)``.

    The row is updated in place with ``counter = counter + 1`` so two
    concurrent writers can never observe the same value; the increment
    commits together with the row that consumes it.
    """
    counter = getattr(Workspace, column)
    row = db.execute(
        update(Workspace)
        .where(Workspace.id == workspace_id)
        .values({column: counter + 1})
        .returning(Workspace.key, counter)
        .execution_options(synchronize_session=False)
    ).one()
    return row[0], row[1]


def get_issue(db: Session, workspace_id: uuid.UUID, issue_id: uuid.UUID) -> Issue:
    issue = db.execute(
        select(Issue).where(Issue.id == issue_id, Issue.workspace_id == workspace_id)
    ).scalar_one_or_none()
    if not issue:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Issue not found",
        )
    return issue


def _require_assignee(
    db: Session, workspace_id: uuid.UUID, assignee_id: uuid.UUID | None
) -> None:
    if assignee_id is None:
        return
    member = db.execute(
        select(WorkspaceMember.id).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == assignee_id,
        )
    ).first()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Assignee not in workspace",
        )


def _comparable(value: Any) -> Any:
    # SQLite returns naive datetimes; compare everything in UTC.
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def _clean_labels(labels: list[str] | None) -> list[str]:
    return [label.strip() for label in labels or [] if label and label.strip()]


def list_issues(
    db: Session, workspace_id: uuid.UUID, filters: IssueFilters
) -> tuple[list[Issue], int]:
    conditions = [Issue.workspace_id == workspace_id]
    if filters.status:
        conditions.append(Issue.status == parse_status(filters.status))
    if filters.priority:
        conditions.append(Issue.priority == parse_priority(filters.priority))
    if filters.assignee_id:
        conditions.append(Issue.assignee_id == filters.assignee_id)
    if filters.ticket_id and filters.ticket_id.strip():
        conditions.append(Issue.ticket_id == filters.ticket_id.strip().upper())
    if filters.q and filters.q.strip():
        pattern = f"%{filters.q.strip().lower()}%"
        conditions.append(
            or_(
                func.lower(Issue.title).like(pattern),
                func.lower(Issue.description).like(pattern),
            )
        )

    page = max(filters.page, 1)
    limit = max(1, min(filters.limit, MAX_LIMIT))

    total = db.execute(select(func.count(Issue.id)).where(*conditions)).scalar_one()
    issues = db.execute(
        select(Issue)
        .where(*conditions)
        .order_by(Issue.created_at.desc(), Issue.ticket_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()
    return list(issues), total


def _notify_assignee(
    db: Session,
    realtime: RealtimePublisher,
    issue: Issue,
    actor: User,
) -> None:
    if issue.assignee_id is None or issue.assignee_id == actor.id:
        return
    notification_service.create_notification(
        db,
        realtime,
        user_id=issue.assignee_id,
        type="assigned",
        message=f'You were assigned to issue "{issue.title}"',
        workspace_id=issue.workspace_id,
        issue_id=issue.id,
    )


def create_issue(
    db: Session,
    realtime: RealtimePublisher,
    workspace_id: uuid.UUID,
    actor: User,
    payload: IssueCreate,
) -> Issue:
    issue_status = parse_status(payload.status) if payload.status else IssueStatus.OPEN
    priority = (
        parse_priority(payload.priority) if payload.priority else IssuePriority.MEDIUM
    )
    _require_assignee(db, workspace_id, payload.assignee_id)

    key, number = next_counter(db, workspace_id, "issue_counter")
    issue = Issue(
        workspace_id=workspace_id,
        ticket_id=f"{key}-{number}",
        title=payload.title.strip(),
        description=payload.description or "",
        status=issue_status,
        priority=priority,
        labels=_clean_labels(payload.labels),
        assignee_id=payload.assignee_id,
        created_by_id=actor.id,
        due_date=payload.due_date,
    )
    db.add(issue)
    db.flush()

    activity_service.log_activity(
        db, workspace_id, actor.id, "issue_created", issue.id, {"title": issue.title}
    )
    _notify_assignee(db, realtime, issue, actor)
    db.commit()
    db.refresh(issue)

    logger.info("Created issue %s", issue.ticket_id)
    realtime.to_workspace(
        workspace_id,
        "issue_created",
        {"issueId": issue.id, "title": issue.title, "actorId": actor.id},
    )
    return issue


def update_issue(
    db: Session,
    realtime: RealtimePublisher,
    workspace_id: uuid.UUID,
    actor: User,
    issue_id: uuid.UUID,
    payload: IssueUpdate,
) -> Issue:
    issue = get_issue(db, workspace_id, issue_id)

    updates: dict[str, Any] = {}
    if payload.provided("title"):
        if not payload.title or not payload.title.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title is required",
            )
        updates["title"] = payload.title.strip()
    if payload.provided("description"):
        updates["description"] = payload.description or ""
    if payload.provided("status"):
        if payload.status is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid status",
            )
        updates["status"] = parse_status(payload.status)
    if payload.provided("priority"):
        if payload.priority is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid priority",
            )
        updates["priority"] = parse_priority(payload.priority)
    if payload.provided("labels"):
        updates["labels"] = _clean_labels(payload.labels)
    if payload.provided("assignee_id"):
        _require_assignee(db, workspace_id, payload.assignee_id)
        updates["assignee_id"] = payload.assignee_id
    if payload.provided("due_date"):
        updates["due_date"] = payload.due_date

    changes: dict[str, dict[str, Any]] = {}
    for field, value in updates.items():
        previous = _comparable(getattr(issue, field))
        value = _comparable(value)
        if previous != value:
            changes[to_camel(field)] = {"from": previous, "to": value}
            setattr(issue, field, value)

    if not changes:
        return issue

    resolved = "status" in changes and issue.status == IssueStatus.DONE
    activity_service.log_activity(
        db,
        workspace_id,
        actor.id,
        "issue_resolved" if resolved else "issue_updated",
        issue.id,
        {"fields": list(changes), "changes": changes},
    )
    if "assigneeId" in changes:
        _notify_assignee(db, realtime, issue, actor)
    db.commit()
    db.refresh(issue)

    realtime.to_workspace(
        workspace_id,
        "issue_updated",
        {"issueId": issue.id, "actorId": actor.id},
    )
    return issue


def delete_issue(
    db: Session,
    realtime: RealtimePublisher,
    workspace_id: uuid.UUID,
    actor: User,
    issue_id: uuid.UUID,
) -> None:
    issue = get_issue(db, workspace_id, issue_id)
    meta = {"title": issue.title, "ticketId": issue.ticket_id}

    db.execute(delete(Comment).where(Comment.issue_id == issue.id))
    linked_articles = db.execute(
        select(Article)
        .join(article_issue_links, article_issue_links.c.article_id == Article.id)
        .where(article_issue_links.c.issue_id == issue.id)
    ).scalars().all()
    for article in linked_articles:
        article.linked_issues.remove(issue)
    db.delete(issue)
    activity_service.log_activity(db, workspace_id, actor.id, "issue_deleted", None, meta)
    db.commit()

    realtime.to_workspace(
        workspace_id,
        "issue_deleted",
        {"issueId": issue_id, "actorId": actor.id},
    )
