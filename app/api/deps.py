import uuid

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import parse_access
from app.models.users import User
from app.models.workspaces import WorkspaceMember
from app.services.workspace_service import require_member


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    scheme, _, param = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not param.strip():
        return None
    return param.strip()


def authenticate_token(raw_token: str, db: Session) -> User | None:
    """Resolve an access token to its user.

    Bad signatures, expired or malformed tokens and unknown subjects all mean
    "no principal"; the caller decides whether that is an error.
    """
    try:
        user_id = parse_access(raw_token)
    except jwt.InvalidTokenError:
        return None
    return db.get(User, user_id)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User | None:
    token = _extract_bearer_token(request)
    if not token:
        return None
    return authenticate_token(token, db)


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_workspace_member(
    workspace_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WorkspaceMember:
    return require_member(db, workspace_id, current_user.id)
