import datetime
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.core.timeutils import utcnow
from app.models.users import User
from app.schemas.common import IssuePriority, IssueStatus

article_issue_links = Table(
    "article_issue_links",
    Base.metadata,
    Column(
        "article_id",
        ForeignKey("articles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "issue_id",
        ForeignKey("issues.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default_factory=uuid.uuid4, init=False
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE")
    )
    ticket_id: Mapped[str] = mapped_column(String(32), unique=True)
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[IssueStatus] = mapped_column(
        Enum(
            IssueStatus,
            name="issuestatus",
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
        ),
        default=IssueStatus.OPEN,
    )
    priority: Mapped[IssuePriority] = mapped_column(
        Enum(
            IssuePriority,
            name="issuepriority",
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
        ),
        default=IssuePriority.MEDIUM,
    )
    labels: Mapped[list[str]] = mapped_column(JSON, default_factory=list)
    assignee_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    assignee: Mapped[User | None] = relationship(
        foreign_keys=[assignee_id], init=False, lazy="joined"
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    created_by: Mapped[User | None] = relationship(
        foreign_keys=[created_by_id], init=False, lazy="joined"
    )
    due_date: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utcnow,
        server_default=func.now(),
        init=False,
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        init=False,
    )

    __table_args__ = (
        Index("ix_issues_workspace_created", "workspace_id", "created_at"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default_factory=uuid.uuid4, init=False
    )
    issue_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))
    user: Mapped[User] = relationship(init=False, lazy="joined")
    body: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utcnow,
        server_default=func.now(),
        init=False,
    )


class Article(Base):
    __tablename__ = "articles"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default_factory=uuid.uuid4, init=False
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), index=True
    )
    kb_id: Mapped[str] = mapped_column(String(40), unique=True)
    title: Mapped[str] = mapped_column(String(500))
    body: Mapped[str] = mapped_column(Text, default="")
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    created_by: Mapped[User | None] = relationship(
        foreign_keys=[created_by_id], init=False, lazy="joined"
    )
    updated_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    updated_by: Mapped[User | None] = relationship(
        foreign_keys=[updated_by_id], init=False, lazy="joined"
    )
    linked_issues: Mapped[list[Issue]] = relationship(
        secondary=article_issue_links,
        default_factory=list,
        order_by="Issue.ticket_id",
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utcnow,
        server_default=func.now(),
        init=False,
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        init=False,
    )

    @property
    def linked_issue_ids(self) -> list[uuid.UUID]:
        return [issue.id for issue in self.linked_issues]
