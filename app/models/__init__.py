from app.core.database import Base
from app.models.activity import Activity, Notification
from app.models.issues import Article, Comment, Issue, article_issue_links
from app.models.users import OtpCode, RefreshToken, User
from app.models.workspaces import Workspace, WorkspaceInvite, WorkspaceMember

__all__ = [
    "Activity",
    "Article",
    "Base",
    "Comment",
    "Issue",
    "Notification",
    "OtpCode",
    "RefreshToken",
    "User",
    "Workspace",
    "WorkspaceInvite",
    "WorkspaceMember",
    "article_issue_links",
]
