import json
import uuid
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.activity import Activity

DEFAULT_LIMIT = 30
MAX_LIMIT = 50


def log_activity(
    db: Session,
    workspace_id: uuid.UUID,
    actor_id: uuid.UUID | None,
    action: str,
    issue_id: uuid.UUID | None = None,
    meta: dict[str, Any] | None = None,
) -> Activity:
    """Stage an activity row; the caller's commit persists it."""
    activity = Activity(
        workspace_id=workspace_id,
        action=action,
        actor_id=actor_id,
        issue_id=issue_id,
        meta=json.dumps(jsonable_encoder(meta)) if meta else None,
    )
    db.add(activity)
    return activity


def list_activities(
    db: Session, workspace_id: uuid.UUID, limit: int | None = None
) -> list[Activity]:
    if limit is None:
        limit = DEFAULT_LIMIT
    limit = max(1, min(limit, MAX_LIMIT))
    return list(
        db.execute(
            select(Activity)
            .where(Activity.workspace_id == workspace_id)
            .order_by(Activity.created_at.desc())
            .limit(limit)
        ).scalars()
    )
