import secrets
import uuid
from collections.abc import Iterable
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.timeutils import ensure_utc, utcnow
from app.models.issues import Article, Issue
from app.models.users import User
from app.models.workspaces import Workspace, WorkspaceInvite, WorkspaceMember
from app.schemas.common import WorkspaceRole

INVITE_TTL_DAYS = 7
RECENT_LIMIT = 5

ANY_ROLE = (WorkspaceRole.OWNER, WorkspaceRole.ADMIN, WorkspaceRole.MEMBER)
MANAGERS = (WorkspaceRole.OWNER, WorkspaceRole.ADMIN)


def require_member(
    db: Session, workspace_id: uuid.UUID, user_id: uuid.UUID
) -> WorkspaceMember:
    """Membership of ``user_id`` in ``workspace_id``.

    A missing membership is reported exactly like a missing workspace so
    outsiders cannot discover workspace ids.
    """
    member = db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    ).scalar_one_or_none()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )
    return member


def require_role(
    member: WorkspaceMember, allowed: Iterable[WorkspaceRole]
) -> WorkspaceMember:
    # Allow-list only: OWNER does not implicitly satisfy an ADMIN-only check.
    if member.role not in tuple(allowed):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role",
        )
    return member


def list_workspaces(db: Session, user: User) -> list[tuple[Workspace, WorkspaceRole]]:
    rows = db.execute(
        select(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user.id)
        .order_by(Workspace.created_at)
    ).all()
    return [(workspace, role) for workspace, role in rows]


def create_workspace(db: Session, user: User, name: str, key: str) -> Workspace:
    key = key.strip().upper()
    exists = db.execute(select(Workspace.id).where(Workspace.key == key)).first()
    if exists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Workspace key already in use",
        )

    workspace = Workspace(name=name.strip(), key=key, owner_id=user.id)
    db.add(workspace)
    db.flush()
    db.add(
        WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            role=WorkspaceRole.OWNER,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Workspace key already in use",
        )
    db.refresh(workspace)
    return workspace


def join_workspace(db: Session, user: User, code: str) -> WorkspaceMember:
    invite = db.execute(
        select(WorkspaceInvite).where(WorkspaceInvite.code == code.strip())
    ).scalar_one_or_none()
    if not invite:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite invalid",
        )
    if ensure_utc(invite.expires_at) <= utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite expired",
        )

    existing = db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == invite.workspace_id,
            WorkspaceMember.user_id == user.id,
        )
    ).scalar_one_or_none()
    if existing:
        return existing

    member = WorkspaceMember(
        workspace_id=invite.workspace_id,
        user_id=user.id,
        role=WorkspaceRole.MEMBER,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def list_members(db: Session, workspace_id: uuid.UUID) -> list[WorkspaceMember]:
    return list(
        db.execute(
            select(WorkspaceMember)
            .where(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.created_at)
        ).scalars()
    )


def get_member(
    db: Session, workspace_id: uuid.UUID, member_id: uuid.UUID
) -> WorkspaceMember:
    member = db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.id == member_id,
            WorkspaceMember.workspace_id == workspace_id,
        )
    ).scalar_one_or_none()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found",
        )
    return member


def update_member_role(
    db: Session,
    workspace_id: uuid.UUID,
    actor: User,
    member_id: uuid.UUID,
    role: WorkspaceRole,
) -> WorkspaceMember:
    actor_member = require_member(db, workspace_id, actor.id)
    require_role(actor_member, [WorkspaceRole.OWNER])

    member = get_member(db, workspace_id, member_id)
    if member.user_id == actor.id and role != WorkspaceRole.OWNER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Owner cannot remove role",
        )

    member.role = role
    db.commit()
    db.refresh(member)
    return member


def _generate_invite_code(db: Session) -> str:
    while True:
        code = secrets.token_hex(4)
        taken = db.execute(
            select(WorkspaceInvite.id).where(WorkspaceInvite.code == code)
        ).first()
        if not taken:
            return code


def create_invite(
    db: Session, workspace_id: uuid.UUID, actor: User
) -> WorkspaceInvite:
    member = require_member(db, workspace_id, actor.id)
    require_role(member, MANAGERS)

    invite = WorkspaceInvite(
        workspace_id=workspace_id,
        code=_generate_invite_code(db),
        expires_at=(utcnow() + timedelta(days=INVITE_TTL_DAYS)).replace(microsecond=0),
        created_by_id=actor.id,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    return invite


def member_overview(
    db: Session, workspace_id: uuid.UUID, member: WorkspaceMember
) -> dict:
    user_id = member.user_id

    def _count(stmt) -> int:
        return db.execute(stmt).scalar_one()

    created_where = (Issue.workspace_id == workspace_id, Issue.created_by_id == user_id)
    assigned_where = (Issue.workspace_id == workspace_id, Issue.assignee_id == user_id)
    kb_where = (
        Article.workspace_id == workspace_id,
        (Article.created_by_id == user_id) | (Article.updated_by_id == user_id),
    )

    def _recent(model, where, order_col):
        return list(
            db.execute(
                select(model).where(*where).order_by(order_col.desc()).limit(RECENT_LIMIT)
            ).scalars()
        )

    return {
        "member": member,
        "stats": {
            "issues_created": _count(select(func.count(Issue.id)).where(*created_where)),
            "issues_assigned": _count(select(func.count(Issue.id)).where(*assigned_where)),
            "kb_worked_on": _count(select(func.count(Article.id)).where(*kb_where)),
        },
        "recent": {
            "issues_created": _recent(Issue, created_where, Issue.created_at),
            "issues_assigned": _recent(Issue, assigned_where, Issue.updated_at),
            "kb_worked_on": _recent(Article, kb_where, Article.updated_at),
        },
    }
