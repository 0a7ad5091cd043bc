import asyncio
import logging

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api.realtime import _stop_reader
from app.main import app
from app.services import user_service


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


def test_malformed_json_body(client):
    response = client.post(
        "/api/auth/login",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "message": "Malformed request",
        "code": "invalid_request",
        "details": None,
    }


def test_validation_errors_list_fields(client):
    response = client.post("/api/auth/login", json={"email": "not-an-email"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert body["code"] == "validation_error"
    assert {f["field"] for f in body["details"]["fields"]} == {"email", "password"}


def test_not_found_uses_error_envelope(client, alice):
    response = client.get(
        "/api/workspaces/00000000-0000-0000-0000-000000000000/members", headers=alice[0]
    )

    assert response.status_code == 404
    assert response.json()["code"] == "request_failed"


def test_unexpected_error_is_masked(client, alice, monkeypatch):
    def _explode(db, user_id):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(user_service, "get_user", _explode)

    with TestClient(app, raise_server_exceptions=False) as unsafe:
        response = unsafe.get("/api/users/me", headers=alice[0])

    assert response.status_code == 500
    assert response.json() == {
        "message": "Unexpected error",
        "code": "internal_error",
        "details": None,
    }


def test_realtime_requires_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/realtime/ws"):
            pass

    assert exc_info.value.code == 1008


def test_realtime_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/realtime/ws?token=garbage"):
            pass

    assert exc_info.value.code == 1008


def test_failed_client_reader_is_logged(caplog):
    async def scenario():
        async def broken():
            raise RuntimeError("socket gone")

        reader = asyncio.create_task(broken())
        await asyncio.sleep(0)
        await _stop_reader(reader)

    with caplog.at_level(logging.WARNING, logger="app.api.realtime"):
        asyncio.run(scenario())

    assert "Realtime client reader failed" in caplog.text


def test_running_client_reader_is_cancelled_quietly(caplog):
    async def scenario():
        reader = asyncio.create_task(asyncio.sleep(60))
        await _stop_reader(reader)
        return reader

    with caplog.at_level(logging.WARNING, logger="app.api.realtime"):
        reader = asyncio.run(scenario())

    assert reader.cancelled()
    assert "Realtime client reader failed" not in caplog.text
