import uuid

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.users import User
from app.schemas.users import ProfileUpdate


def get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


def update_profile(db: Session, user_id: uuid.UUID, payload: ProfileUpdate) -> User:
    user = get_user(db, user_id)

    # A blank or null name is ignored rather than cleared.
    if payload.provided("name") and payload.name and payload.name.strip():
        user.name = payload.name.strip()
    if payload.provided("avatar_url"):
        user.avatar_url = payload.avatar_url
    if payload.provided("contact"):
        user.contact = payload.contact

    db.commit()
    db.refresh(user)
    return user


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()
