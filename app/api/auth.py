from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.common import OkOut
from app.schemas.users import (
    AuthOut,
    DemoLoginIn,
    GoogleLoginIn,
    LoginIn,
    OtpRequestIn,
    OtpRequestOut,
    OtpVerifyIn,
    RegisterIn,
    UserOut,
)
from app.services import auth_service
from app.services.auth_service import AuthSession
from app.services.email_service import deliver_otp
from app.services.google_service import GoogleIdentityVerifier
from app.services.rate_limit_service import RateLimiter, client_ip, get_rate_limiter

settings = get_settings()


def limit_auth_requests(
    request: Request, limiter: RateLimiter = Depends(get_rate_limiter)
) -> None:
    limiter.hit(
        f"auth:{client_ip(request)}",
        settings.auth_rate_limit,
        settings.auth_rate_window_seconds,
    )


def limit_otp_requests(
    request: Request, limiter: RateLimiter = Depends(get_rate_limiter)
) -> None:
    limiter.hit(
        f"otp:{client_ip(request)}",
        settings.otp_rate_limit,
        settings.auth_rate_window_seconds,
    )


router = APIRouter(
    prefix="/api/auth", tags=["auth"], dependencies=[Depends(limit_auth_requests)]
)


def get_google_verifier() -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier.from_settings(settings)


def _set_refresh_cookie(resp: JSONResponse, value: str, max_age: int) -> None:
    resp.set_cookie(
        key=settings.refresh_cookie_name,
        value=value,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.refresh_cookie_samesite.lower(),
        max_age=max_age,
        path=settings.refresh_cookie_path,
        domain=settings.refresh_cookie_domain or None,
    )


def _session_response(session: AuthSession) -> JSONResponse:
    body = AuthOut(
        access_token=session.access_token,
        user=UserOut.model_validate(session.user),
    )
    resp = JSONResponse(body.model_dump(mode="json", by_alias=True))
    resp.headers["Cache-Control"] = "no-store"
    _set_refresh_cookie(
        resp, session.refresh_token, settings.refresh_token_days * 24 * 60 * 60
    )
    return resp


def _refresh_cookie(request: Request) -> str | None:
    return request.cookies.get(settings.refresh_cookie_name)


@router.post("/register", response_model=AuthOut)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    session = auth_service.register(db, payload.email, payload.name, payload.password)
    return _session_response(session)


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    session = auth_service.login(db, payload.email, payload.password)
    return _session_response(session)


@router.post("/refresh", response_model=AuthOut)
def refresh(request: Request, db: Session = Depends(get_db)):
    session = auth_service.refresh(db, _refresh_cookie(request))
    return _session_response(session)


@router.post("/logout", response_model=OkOut)
def logout(request: Request, db: Session = Depends(get_db)):
    auth_service.logout(db, _refresh_cookie(request))
    resp = JSONResponse({"ok": True})
    resp.headers["Cache-Control"] = "no-store"
    _set_refresh_cookie(resp, "", 0)
    return resp


@router.post("/demo", response_model=AuthOut)
def demo_login(payload: DemoLoginIn, db: Session = Depends(get_db)):
    session = auth_service.login_demo(db, payload.type)
    return _session_response(session)


@router.post("/google", response_model=AuthOut)
def google_login(
    payload: GoogleLoginIn,
    db: Session = Depends(get_db),
    verifier: GoogleIdentityVerifier = Depends(get_google_verifier),
):
    session = auth_service.login_with_google(db, verifier, payload.credential)
    return _session_response(session)


@router.post(
    "/otp/request",
    response_model=OtpRequestOut,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_otp_requests)],
)
def otp_request(
    payload: OtpRequestIn,
    bg: BackgroundTasks,
    db: Session = Depends(get_db),
):
    challenge = auth_service.request_otp(db, payload.email)
    bg.add_task(deliver_otp, payload.email.strip().lower(), challenge.code)
    return OtpRequestOut(
        expires_at=challenge.expires_at,
        code=challenge.code if settings.otp_return_code else None,
    )


@router.post(
    "/otp/verify",
    response_model=AuthOut,
    dependencies=[Depends(limit_otp_requests)],
)
def otp_verify(payload: OtpVerifyIn, db: Session = Depends(get_db)):
    session = auth_service.login_with_otp(db, payload.email, payload.code)
    return _session_response(session)
