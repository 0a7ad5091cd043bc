import logging
from dataclasses import dataclass

import httpx
from fastapi import HTTPException, status

from app.core.config import Settings

logger = logging.getLogger(__name__)

GOOGLE_TOKENINFO = "https://oauth2.googleapis.com/tokeninfo"


@dataclass(frozen=True)
class GoogleProfile:
    email: str
    name: str | None
    picture: str | None


def _invalid(detail: str = "Invalid Google credential") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class GoogleIdentityVerifier:
    """Validates Google ID tokens through the tokeninfo endpoint."""

    def __init__(self, client_id: str | None, enabled: bool, timeout: float = 5.0):
        self.client_id = client_id
        self.enabled = enabled
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleIdentityVerifier":
        return cls(
            client_id=settings.google_client_id,
            enabled=settings.google_enabled,
            timeout=settings.google_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.client_id and self.client_id.strip())

    def fetch_tokeninfo(self, credential: str) -> dict:
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.get(GOOGLE_TOKENINFO, params={"id_token": credential})
            resp.raise_for_status()
            return resp.json()

    def verify(self, credential: str | None) -> GoogleProfile:
        if not self.configured:
            raise HTTPException(
                status_code=status.HTTP_501_NOT_IMPLEMENTED,
                detail="Google auth not configured",
            )
        if not credential or not credential.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing credential",
            )

        try:
            info = self.fetch_tokeninfo(credential.strip())
        except (httpx.HTTPError, ValueError):
            logger.warning("Google tokeninfo call failed", exc_info=True)
            raise _invalid()

        if not isinstance(info, dict) or info.get("aud") != self.client_id:
            logger.warning("Google credential audience mismatch")
            raise _invalid()

        email = info.get("email")
        if not isinstance(email, str) or not email.strip():
            raise _invalid()

        verified = info.get("email_verified")
        if verified is not None and str(verified).lower() != "true":
            raise _invalid("Email not verified")

        return GoogleProfile(
            email=email.strip().lower(),
            name=info.get("name"),
            picture=info.get("picture"),
        )
