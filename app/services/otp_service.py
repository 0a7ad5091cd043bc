import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import hash_token
from app.core.timeutils import ensure_utc, utcnow
from app.models.users import OtpCode

logger = logging.getLogger(__name__)

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 8
INVALID_CODE = "Invalid or expired code"
TOO_MANY_ATTEMPTS = "Too many attempts"


@dataclass(frozen=True)
class OtpChallenge:
    code: str
    expires_at: datetime


def normalize_email(email: str) -> str:
    return email.strip().lower()


def code_length() -> int:
    return max(MIN_CODE_LENGTH, min(get_settings().otp_code_length, MAX_CODE_LENGTH))


def generate_code(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def issue_code(db: Session, email: str) -> OtpChallenge:
    """Replace any challenge for ``email`` with a fresh one."""
    settings = get_settings()
    email = normalize_email(email)

    db.execute(delete(OtpCode).where(OtpCode.email == email))

    code = generate_code(code_length())
    expires_at = (utcnow() + timedelta(minutes=settings.otp_minutes)).replace(
        microsecond=0
    )
    db.add(OtpCode(email=email, code_hash=hash_token(code), expires_at=expires_at))
    db.commit()
    return OtpChallenge(code=code, expires_at=expires_at)


def _reject() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=INVALID_CODE,
    )


def verify_code(db: Session, email: str, code: str) -> str:
    """Consume the active challenge for ``email``; returns the normalized email.

    Every failure mode yields the same 401 so callers cannot tell a wrong code
    from an expired or already used one.
    """
    email = normalize_email(email)
    challenge = db.execute(
        select(OtpCode)
        .where(OtpCode.email == email)
        .order_by(OtpCode.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()

    if challenge is None or challenge.consumed_at is not None:
        raise _reject()
    if ensure_utc(challenge.expires_at) <= utcnow():
        raise _reject()
    if challenge.attempts >= get_settings().otp_max_attempts:
        db.execute(delete(OtpCode).where(OtpCode.email == email))
        db.commit()
        logger.info("OTP challenge for %s burned after too many attempts", email)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=TOO_MANY_ATTEMPTS,
        )
    if not hmac.compare_digest(challenge.code_hash, hash_token(code.strip())):
        db.execute(
            update(OtpCode)
            .where(OtpCode.id == challenge.id)
            .values(attempts=OtpCode.attempts + 1)
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
        raise _reject()

    consumed = db.execute(
        update(OtpCode)
        .where(OtpCode.id == challenge.id, OtpCode.consumed_at.is_(None))
        .values(consumed_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    if consumed.rowcount != 1:
        raise _reject()
    logger.info("OTP challenge consumed for %s", email)
    return email
