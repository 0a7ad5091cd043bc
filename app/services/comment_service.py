import re
import uuid

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.timeutils import utcnow
from app.models.issues import Comment, Issue
from app.models.users import User
from app.models.workspaces import WorkspaceMember
from app.services import activity_service, notification_service
from app.services.realtime_service import RealtimePublisher
from app.services.workspace_service import require_member

MENTION_RE = re.compile(r"@([\w.+-]+@[\w.-]+\.[A-Za-z]{2,})")


def extract_mentions(body: str) -> list[str]:
    seen: list[str] = []
    for match in MENTION_RE.finditer(body or ""):
        email = match.group(1).lower()
        if email not in seen:
            seen.append(email)
    return seen


def load_issue_for_user(db: Session, issue_id: uuid.UUID, user: User) -> Issue:
    issue = db.get(Issue, issue_id)
    if not issue:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Issue not found",
        )
    require_member(db, issue.workspace_id, user.id)
    return issue


def list_comments(db: Session, issue: Issue) -> list[Comment]:
    return list(
        db.execute(
            select(Comment)
            .where(Comment.issue_id == issue.id)
            .order_by(Comment.created_at.asc())
        ).scalars()
    )


def _notify_mentions(
    db: Session,
    realtime: RealtimePublisher,
    issue: Issue,
    author: User,
    body: str,
) -> None:
    emails = extract_mentions(body)
    if not emails:
        return
    mentioned = db.execute(
        select(User)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(
            WorkspaceMember.workspace_id == issue.workspace_id,
            func.lower(User.email).in_(emails),
            User.id != author.id,
        )
    ).scalars()
    for user in mentioned:
        notification_service.create_notification(
            db,
            realtime,
            user_id=user.id,
            type="mention",
            message=f'You were mentioned in issue "{issue.title}"',
            workspace_id=issue.workspace_id,
            issue_id=issue.id,
        )


def add_comment(
    db: Session,
    realtime: RealtimePublisher,
    issue: Issue,
    author: User,
    body: str,
) -> Comment:
    comment = Comment(issue_id=issue.id, user_id=author.id, body=body.strip())
    db.add(comment)
    issue.updated_at = utcnow()
    db.flush()

    activity_service.log_activity(
        db,
        issue.workspace_id,
        author.id,
        "comment_added",
        issue.id,
        {"commentId": comment.id},
    )
    _notify_mentions(db, realtime, issue, author, comment.body)
    db.commit()
    db.refresh(comment)

    realtime.to_workspace(
        issue.workspace_id,
        "comment_added",
        {"issueId": issue.id, "commentId": comment.id, "actorId": author.id},
    )
    return comment
