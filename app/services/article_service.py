import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.issues import Article, Issue, article_issue_links
from app.models.users import User
from app.schemas.issues import ArticleCreate, ArticleUpdate
from app.services import activity_service
from app.services.issue_service import next_counter
from app.services.realtime_service import RealtimePublisher


def _resolve_issue_links(
    db: Session, workspace_id: uuid.UUID, raw_ids: list[str] | None
) -> list[Issue]:
    ids: list[uuid.UUID] = []
    for raw in raw_ids or []:
        try:
            parsed = uuid.UUID(str(raw).strip())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid id",
            )
        if parsed not in ids:
            ids.append(parsed)
    if not ids:
        return []

    issues = list(
        db.execute(
            select(Issue).where(Issue.id.in_(ids), Issue.workspace_id == workspace_id)
        ).scalars()
    )
    if len(issues) != len(ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid issue link",
        )
    by_id = {issue.id: issue for issue in issues}
    return [by_id[issue_id] for issue_id in ids]


def _require_title(title: str | None) -> str:
    if not title or not title.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required",
        )
    return title.strip()


def list_articles(
    db: Session, workspace_id: uuid.UUID, issue_id: uuid.UUID | None = None
) -> list[Article]:
    stmt = select(Article).where(Article.workspace_id == workspace_id)
    if issue_id is not None:
        stmt = stmt.join(
            article_issue_links, article_issue_links.c.article_id == Article.id
        ).where(article_issue_links.c.issue_id == issue_id)
    stmt = stmt.order_by(Article.updated_at.desc())
    return list(db.execute(stmt).scalars())


def get_article(db: Session, workspace_id: uuid.UUID, article_id: uuid.UUID) -> Article:
    article = db.execute(
        select(Article).where(
            Article.id == article_id,
            Article.workspace_id == workspace_id,
        )
    ).scalar_one_or_none()
    if not article:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Article not found",
        )
    return article


def create_article(
    db: Session,
    realtime: RealtimePublisher,
    workspace_id: uuid.UUID,
    actor: User,
    payload: ArticleCreate,
) -> Article:
    title = _require_title(payload.title)
    linked = _resolve_issue_links(db, workspace_id, payload.linked_issue_ids)

    key, number = next_counter(db, workspace_id, "kb_counter")
    article = Article(
        workspace_id=workspace_id,
        kb_id=f"{key}-KB-{number}",
        title=title,
        body=payload.body or "",
        created_by_id=actor.id,
        updated_by_id=actor.id,
        linked_issues=linked,
    )
    db.add(article)
    db.flush()

    activity_service.log_activity(
        db,
        workspace_id,
        actor.id,
        "kb_linked" if linked else "kb_created",
        linked[0].id if linked else None,
        {"articleId": article.id, "kbId": article.kb_id, "title": title},
    )
    db.commit()
    db.refresh(article)

    realtime.to_workspace(
        workspace_id,
        "kb_created",
        {"articleId": article.id, "title": title, "actorId": actor.id},
    )
    return article


def update_article(
    db: Session,
    realtime: RealtimePublisher,
    workspace_id: uuid.UUID,
    actor: User,
    article_id: uuid.UUID,
    payload: ArticleUpdate,
) -> Article:
    article = get_article(db, workspace_id, article_id)

    title = _require_title(payload.title) if payload.provided("title") else None
    linked = None
    if payload.provided("linked_issue_ids"):
        linked = _resolve_issue_links(db, workspace_id, payload.linked_issue_ids)

    if title is not None:
        article.title = title
    if payload.provided("body"):
        article.body = payload.body or ""

    added: list[uuid.UUID] = []
    if linked is not None:
        before = set(article.linked_issue_ids)
        added = [issue.id for issue in linked if issue.id not in before]
        article.linked_issues = linked
    article.updated_by_id = actor.id

    activity_service.log_activity(
        db,
        workspace_id,
        actor.id,
        "kb_linked" if added else "kb_updated",
        added[0] if added else None,
        {"articleId": article.id, "kbId": article.kb_id, "added": added},
    )
    db.commit()
    db.refresh(article)

    realtime.to_workspace(
        workspace_id,
        "kb_updated",
        {"articleId": article.id, "actorId": actor.id},
    )
    return article


def delete_article(
    db: Session,
    realtime: RealtimePublisher,
    workspace_id: uuid.UUID,
    actor: User,
    article_id: uuid.UUID,
) -> None:
    article = get_article(db, workspace_id, article_id)
    meta = {"kbId": article.kb_id, "title": article.title}
    db.delete(article)
    activity_service.log_activity(db, workspace_id, actor.id, "kb_deleted", None, meta)
    db.commit()

    realtime.to_workspace(
        workspace_id,
        "kb_deleted",
        {"articleId": article_id, "actorId": actor.id},
    )
