from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.security import generate_raw_token, hash_token, refresh_token_expiry
from app.core.timeutils import ensure_utc, utcnow
from app.models.users import RefreshToken, User


def _ensure_unique_token_hash(db: Session, raw_token: str) -> tuple[str, str]:
    token_hash = hash_token(raw_token)
    exists = db.execute(
        select(RefreshToken.id).where(RefreshToken.token_hash == token_hash)
    ).first()
    if exists:
        return _ensure_unique_token_hash(db, generate_raw_token())
    return raw_token, token_hash


def issue_refresh_token(db: Session, user: User) -> str:
    """Stage a new refresh token row for ``user`` and return the plaintext.

    Only the SHA-256 hash is stored; the caller commits.
    """
    raw_token, token_hash = _ensure_unique_token_hash(db, generate_raw_token())
    db.add(
        RefreshToken(
            user_id=user.id,
            token_hash=token_hash,
            expires_at=refresh_token_expiry(),
        )
    )
    return raw_token


def find_refresh_token(db: Session, raw_token: str) -> RefreshToken | None:
    return db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(raw_token))
    ).scalar_one_or_none()


def is_usable(token: RefreshToken) -> bool:
    return token.revoked_at is None and ensure_utc(token.expires_at) > utcnow()


def revoke(token: RefreshToken) -> None:
    if token.revoked_at is None:
        token.revoked_at = utcnow()


def claim(db: Session, token: RefreshToken) -> bool:
    """Atomically revoke ``token`` unless someone else already did."""
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == token.id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1
