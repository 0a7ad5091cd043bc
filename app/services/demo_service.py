import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.activity import Activity, Notification
from app.models.issues import Article, Comment, Issue
from app.models.users import User
from app.models.workspaces import Workspace, WorkspaceInvite, WorkspaceMember
from app.schemas.common import IssuePriority, IssueStatus, WorkspaceRole
from app.services.user_service import find_user_by_email

logger = logging.getLogger(__name__)

DEMO_OWNER_EMAIL = "demo_owner@demo.com"
DEMO_OWNER_NAME = "Demo Owner"
DEMO_MEMBER_EMAIL = "demo_member@demo.com"
DEMO_MEMBER_NAME = "Demo Member"
DEMO_PASSWORD = "Demo@1234"
DEMO_KEY = "DEMO"
DEMO_NAME = "Demo Workspace"


@dataclass(frozen=True)
class DemoUsers:
    owner: User
    member: User


def _ensure_user(db: Session, email: str, name: str, role: str) -> User:
    user = find_user_by_email(db, email)
    if user:
        return user
    user = User(
        email=email,
        name=name,
        password_hash=hash_password(DEMO_PASSWORD),
        role=role,
    )
    db.add(user)
    db.flush()
    return user


def ensure_demo_users(db: Session) -> DemoUsers:
    return DemoUsers(
        owner=_ensure_user(db, DEMO_OWNER_EMAIL, DEMO_OWNER_NAME, "OWNER"),
        member=_ensure_user(db, DEMO_MEMBER_EMAIL, DEMO_MEMBER_NAME, "MEMBER"),
    )


def _clear_workspace(db: Session, workspace: Workspace) -> None:
    issue_ids = select(Issue.id).where(Issue.workspace_id == workspace.id)
    db.execute(delete(WorkspaceInvite).where(WorkspaceInvite.workspace_id == workspace.id))
    db.execute(delete(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace.id))
    db.execute(delete(Activity).where(Activity.workspace_id == workspace.id))
    db.execute(delete(Notification).where(Notification.workspace_id == workspace.id))
    for article in db.execute(
        select(Article).where(Article.workspace_id == workspace.id)
    ).scalars():
        db.delete(article)
    db.flush()
    db.execute(delete(Comment).where(Comment.issue_id.in_(issue_ids)))
    db.execute(delete(Issue).where(Issue.workspace_id == workspace.id))
    workspace.issue_counter = 0
    workspace.kb_counter = 0


def _add_issue(
    db: Session,
    workspace: Workspace,
    creator: User,
    title: str,
    issue_status: IssueStatus,
    priority: IssuePriority,
    assignee: User | None,
) -> Issue:
    workspace.issue_counter += 1
    issue = Issue(
        workspace_id=workspace.id,
        ticket_id=f"{workspace.key}-{workspace.issue_counter}",
        title=title,
        description=f"Seeded demo issue for {title}",
        status=issue_status,
        priority=priority,
        assignee_id=assignee.id if assignee else None,
        created_by_id=creator.id,
    )
    db.add(issue)
    return issue


def reset_demo_data(db: Session) -> Workspace:
    """Rebuild the DEMO workspace from scratch in a single transaction."""
    users = ensure_demo_users(db)

    workspace = db.execute(
        select(Workspace).where(Workspace.key == DEMO_KEY)
    ).scalar_one_or_none()
    if workspace:
        _clear_workspace(db, workspace)
        workspace.name = DEMO_NAME
        workspace.owner_id = users.owner.id
    else:
        workspace = Workspace(name=DEMO_NAME, key=DEMO_KEY, owner_id=users.owner.id)
        db.add(workspace)
    db.flush()

    db.add(
        WorkspaceMember(
            workspace_id=workspace.id, user_id=users.owner.id, role=WorkspaceRole.OWNER
        )
    )
    db.add(
        WorkspaceMember(
            workspace_id=workspace.id, user_id=users.member.id, role=WorkspaceRole.MEMBER
        )
    )

    first = _add_issue(
        db, workspace, users.owner, "First demo issue",
        IssueStatus.OPEN, IssuePriority.HIGH, users.member,
    )
    second = _add_issue(
        db, workspace, users.member, "Payment webhook failing",
        IssueStatus.IN_PROGRESS, IssuePriority.MEDIUM, users.owner,
    )
    third = _add_issue(
        db, workspace, users.owner, "Update FAQ",
        IssueStatus.DONE, IssuePriority.LOW, None,
    )
    db.flush()

    workspace.kb_counter += 1
    db.add(
        Article(
            workspace_id=workspace.id,
            kb_id=f"{workspace.key}-KB-{workspace.kb_counter}",
            title="Demo Knowledge Base",
            body="This is a seeded knowledge base article for SprintDesk.",
            created_by_id=users.owner.id,
            updated_by_id=users.owner.id,
            linked_issues=[first, second],
        )
    )

    db.add(Comment(issue_id=first.id, user_id=users.owner.id, body="Created demo issue. Let's fix it quickly."))
    db.add(Comment(issue_id=second.id, user_id=users.member.id, body="Investigating logs now."))
    db.add(Comment(issue_id=third.id, user_id=users.owner.id, body="Marked as done."))

    db.commit()
    db.refresh(workspace)
    logger.info("Demo workspace %s reset", workspace.key)
    return workspace
