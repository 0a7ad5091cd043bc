import httpx
import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from app.api.auth import get_google_verifier
from app.main import app
from app.models.users import User
from app.services.google_service import GoogleIdentityVerifier

CLIENT_ID = "sprintdesk-web.apps.googleusercontent.com"


class FakeVerifier(GoogleIdentityVerifier):
    def __init__(self, response):
        super().__init__(client_id=CLIENT_ID, enabled=True)
        self.response = response
        self.calls: list[str] = []

    def fetch_tokeninfo(self, credential: str) -> dict:
        self.calls.append(credential)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def use_verifier(client):
    def _use(response) -> FakeVerifier:
        verifier = FakeVerifier(response)
        app.dependency_overrides[get_google_verifier] = lambda: verifier
        return verifier

    return _use


def _login(client, credential="google-id-token"):
    return client.post("/api/auth/google", json={"credential": credential})


def _tokeninfo(**overrides) -> dict:
    info = {
        "aud": CLIENT_ID,
        "email": "Dana@Example.com",
        "email_verified": "true",
        "name": "Dana Scully",
        "picture": "https://example.com/dana.png",
    }
    info.update(overrides)
    return info


def test_google_disabled_returns_501(client):
    response = _login(client)

    assert response.status_code == 501
    assert response.json()["message"] == "Google auth not configured"
    assert response.json()["code"] == "request_failed"


def test_missing_credential(client, use_verifier):
    verifier = use_verifier(_tokeninfo())

    response = _login(client, credential="  ")

    assert response.status_code == 400
    assert response.json()["message"] == "Missing credential"
    assert verifier.calls == []


def test_google_login_creates_user(client, db_session, use_verifier):
    verifier = use_verifier(_tokeninfo())

    response = _login(client)

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["email"] == "dana@example.com"
    assert user["name"] == "Dana Scully"
    assert user["avatarUrl"] == "https://example.com/dana.png"
    assert verifier.calls == ["google-id-token"]
    assert "sprintdesk_refresh" in response.cookies


def test_google_login_reuses_account_and_backfills_avatar(
    client, db_session, use_verifier
):
    registered = client.post(
        "/api/auth/register",
        json={"email": "dana@example.com", "name": "Dana", "password": "Secret123!"},
    ).json()
    use_verifier(_tokeninfo())

    response = _login(client)

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] == registered["user"]["id"]
    assert user["name"] == "Dana"
    assert user["avatarUrl"] == "https://example.com/dana.png"
    assert db_session.execute(select(func.count(User.id))).scalar_one() == 1


def test_google_login_keeps_existing_avatar(client, use_verifier):
    headers = {
        "Authorization": "Bearer "
        + client.post(
            "/api/auth/register",
            json={"email": "dana@example.com", "name": "Dana", "password": "Secret123!"},
        ).json()["accessToken"]
    }
    client.patch(
        "/api/users/me",
        json={"avatarUrl": "https://example.com/mine.png"},
        headers=headers,
    )
    use_verifier(_tokeninfo())

    response = _login(client)

    assert response.json()["user"]["avatarUrl"] == "https://example.com/mine.png"


@pytest.mark.parametrize(
    ("tokeninfo", "message"),
    [
        (_tokeninfo(aud="someone-else"), "Invalid Google credential"),
        (_tokeninfo(email=""), "Invalid Google credential"),
        (_tokeninfo(email_verified="false"), "Email not verified"),
        (httpx.ConnectTimeout("timed out"), "Invalid Google credential"),
    ],
)
def test_google_rejections_create_nothing(
    client, db_session, use_verifier, tokeninfo, message
):
    use_verifier(tokeninfo)

    response = _login(client)

    assert response.status_code == 401
    assert response.json()["message"] == message
    assert db_session.execute(select(func.count(User.id))).scalar_one() == 0


def test_verifier_treats_http_errors_as_invalid(monkeypatch):
    verifier = GoogleIdentityVerifier(client_id=CLIENT_ID, enabled=True, timeout=1)
    request = httpx.Request("GET", "https://oauth2.googleapis.com/tokeninfo")

    def fake_fetch(credential):
        raise httpx.HTTPStatusError(
            "bad token",
            request=request,
            response=httpx.Response(400, request=request),
        )

    monkeypatch.setattr(verifier, "fetch_tokeninfo", fake_fetch)

    with pytest.raises(HTTPException) as excinfo:
        verifier.verify("token")

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Invalid Google credential"


def test_verifier_requires_client_id():
    assert not GoogleIdentityVerifier(client_id=None, enabled=True).configured
    assert not GoogleIdentityVerifier(client_id=CLIENT_ID, enabled=False).configured
    assert GoogleIdentityVerifier(client_id=CLIENT_ID, enabled=True).configured
