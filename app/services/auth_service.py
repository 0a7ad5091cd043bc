import logging
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import (
    create_access,
    hash_password,
    unusable_password_hash,
    verify_password,
)
from app.models.users import User
from app.services import demo_service, otp_service, token_service
from app.services.google_service import GoogleIdentityVerifier
from app.services.otp_service import OtpChallenge
from app.services.user_service import find_user_by_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    user: User


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def issue_session(db: Session, user: User) -> AuthSession:
    """Mint an access/refresh pair and commit everything staged so far."""
    db.flush()
    refresh_token = token_service.issue_refresh_token(db, user)
    db.commit()
    db.refresh(user)
    return AuthSession(
        access_token=create_access(str(user.id), user.role),
        refresh_token=refresh_token,
        user=user,
    )


def register(db: Session, email: str, name: str, password: str) -> AuthSession:
    email = email.strip().lower()
    if find_user_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already in use",
        )

    user = User(email=email, name=name.strip(), password_hash=hash_password(password))
    db.add(user)
    logger.info("Registered user %s", user.id)
    return issue_session(db, user)


def login(db: Session, email: str, password: str) -> AuthSession:
    user = find_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Rejected password login")
        raise _unauthorized("Invalid credentials")
    return issue_session(db, user)


def refresh(db: Session, raw_token: str | None) -> AuthSession:
    if not raw_token or not raw_token.strip():
        raise _unauthorized("Missing refresh token")

    token = token_service.find_refresh_token(db, raw_token.strip())
    if not token or not token_service.is_usable(token):
        logger.info("Rejected refresh token")
        raise _unauthorized("Refresh token invalid")

    # The presented token is burned before a new one exists, so it can never
    # be replayed even if issuing the replacement fails.
    if not token_service.claim(db, token):
        raise _unauthorized("Refresh token invalid")

    return issue_session(db, token.user)


def logout(db: Session, raw_token: str | None) -> None:
    if not raw_token or not raw_token.strip():
        return
    token = token_service.find_refresh_token(db, raw_token.strip())
    if not token or token.revoked_at is not None:
        return
    token_service.revoke(token)
    db.commit()


def ensure_user(db: Session, email: str, name: str) -> User:
    user = find_user_by_email(db, email)
    if user:
        return user
    user = User(
        email=email.strip().lower(),
        name=name,
        password_hash=unusable_password_hash(),
    )
    db.add(user)
    db.flush()
    return user


def demo_is_member(kind: str | None) -> bool:
    return (kind or "").strip().lower() == "member"


def login_demo(db: Session, kind: str | None) -> AuthSession:
    if not get_settings().demo_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Demo mode disabled",
        )
    users = demo_service.ensure_demo_users(db)
    user = users.member if demo_is_member(kind) else users.owner
    return issue_session(db, user)


def login_with_google(
    db: Session, verifier: GoogleIdentityVerifier, credential: str | None
) -> AuthSession:
    # Verification happens before anything is written.
    profile = verifier.verify(credential)

    user = find_user_by_email(db, profile.email)
    if not user:
        user = User(
            email=profile.email,
            name=(profile.name or profile.email.split("@")[0]).strip(),
            password_hash=unusable_password_hash(),
            avatar_url=profile.picture,
        )
        db.add(user)
    elif not user.avatar_url and profile.picture:
        user.avatar_url = profile.picture
    return issue_session(db, user)


def request_otp(db: Session, email: str) -> OtpChallenge:
    return otp_service.issue_code(db, email)


def login_with_otp(db: Session, email: str, code: str) -> AuthSession:
    email = otp_service.verify_code(db, email, code)
    user = ensure_user(db, email, email.split("@")[0])
    return issue_session(db, user)
