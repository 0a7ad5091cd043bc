import hashlib
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from app.core.config import get_settings

ph = PasswordHasher(time_cost=3, memory_cost=64 * 1024, parallelism=2)

JWT_ALGO = "HS256"
JWT_KEY_BYTES = 32
REFRESH_TOKEN_BYTES = 64


@lru_cache
def signing_key(secret: str | None) -> bytes:
    """HS256 key derived from the configured secret.

    Short secrets are right-padded with zero bytes up to 32 bytes; an empty
    secret becomes 32 zero bytes.
    """
    raw = (secret or "").encode("utf-8")
    if len(raw) < JWT_KEY_BYTES:
        raw = raw + b"\x00" * (JWT_KEY_BYTES - len(raw))
    return raw


def generate_raw_token(nbytes: int = REFRESH_TOKEN_BYTES) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def refresh_token_expiry(days: int | None = None) -> datetime:
    if days is None:
        days = get_settings().refresh_token_days
    return datetime.now(UTC) + timedelta(days=days)


def hash_password(plain: str) -> str:
    return ph.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, plain)
    except (VerificationError, InvalidHashError):
        return False


def unusable_password_hash() -> str:
    return hash_password(generate_raw_token(32))


def create_token(sub: str, role: str, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, signing_key(get_settings().jwt_secret), algorithm=JWT_ALGO)


def create_access(sub: str, role: str) -> str:
    return create_token(sub, role, timedelta(minutes=get_settings().access_min))


def parse_access(token: str) -> uuid.UUID:
    """Return the user id carried by an access token.

    Raises ``jwt.InvalidTokenError`` for bad signatures, malformed tokens,
    expired tokens and non-UUID subjects.
    """
    payload = jwt.decode(
        token,
        signing_key(get_settings().jwt_secret),
        algorithms=[JWT_ALGO],
        options={"require": ["sub", "exp"]},
    )
    try:
        return uuid.UUID(str(payload["sub"]))
    except ValueError as exc:
        raise jwt.InvalidTokenError("Invalid subject") from exc
