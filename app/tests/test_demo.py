import uuid

import pytest
from sqlalchemy import func, select

from app.core.config import get_settings
from app.models.activity import Notification
from app.models.issues import Article, Comment, Issue
from app.models.workspaces import Workspace, WorkspaceMember
from app.services import demo_service, notification_service


@pytest.fixture
def demo_disabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "demo_enabled", False)


def _count(db_session, model, *conditions) -> int:
    return db_session.execute(
        select(func.count()).select_from(model).where(*conditions)
    ).scalar_one()


def test_reset_builds_demo_workspace(db_session):
    workspace = demo_service.reset_demo_data(db_session)

    assert workspace.key == "DEMO"
    assert workspace.name == "Demo Workspace"
    assert workspace.issue_counter == 3
    assert workspace.kb_counter == 1

    issues = db_session.execute(
        select(Issue).where(Issue.workspace_id == workspace.id).order_by(Issue.ticket_id)
    ).scalars().all()
    assert [(i.ticket_id, i.title, i.status, i.priority) for i in issues] == [
        ("DEMO-1", "First demo issue", "OPEN", "HIGH"),
        ("DEMO-2", "Payment webhook failing", "IN_PROGRESS", "MEDIUM"),
        ("DEMO-3", "Update FAQ", "DONE", "LOW"),
    ]
    assert issues[2].assignee_id is None

    article = db_session.execute(
        select(Article).where(Article.workspace_id == workspace.id)
    ).scalar_one()
    assert article.kb_id == "DEMO-KB-1"
    assert {i.ticket_id for i in article.linked_issues} == {"DEMO-1", "DEMO-2"}
    assert _count(db_session, Comment) == 3
    assert _count(db_session, WorkspaceMember, WorkspaceMember.workspace_id == workspace.id) == 2


def test_reset_is_rerunnable(db_session):
    first = demo_service.reset_demo_data(db_session)
    second = demo_service.reset_demo_data(db_session)

    assert second.id == first.id
    assert _count(db_session, Workspace, Workspace.key == "DEMO") == 1
    assert _count(db_session, Issue, Issue.workspace_id == second.id) == 3
    assert _count(db_session, Article, Article.workspace_id == second.id) == 1
    assert _count(db_session, Comment) == 3
    assert second.issue_counter == 3


def test_demo_login_as_owner_and_member(client):
    owner = client.post("/api/auth/demo", json={"type": "owner"})
    member = client.post("/api/auth/demo", json={"type": "MEMBER"})
    fallback = client.post("/api/auth/demo", json={"type": "anything"})

    assert owner.status_code == 200
    assert owner.json()["user"]["email"] == "demo_owner@demo.com"
    assert member.json()["user"]["email"] == "demo_member@demo.com"
    assert fallback.json()["user"]["email"] == "demo_owner@demo.com"
    assert "sprintdesk_refresh" in owner.cookies


def test_demo_users_can_use_password_login(client):
    client.post("/api/auth/demo", json={"type": "member"})

    response = client.post(
        "/api/auth/login",
        json={"email": "demo_member@demo.com", "password": "Demo@1234"},
    )

    assert response.status_code == 200


def test_reset_endpoint(client, alice):
    response = client.post("/api/demo/reset", headers=alice[0])

    assert response.status_code == 200
    assert response.json() == {"ok": True}

    owner = client.post("/api/auth/demo", json={"type": "owner"}).json()
    listing = client.get(
        "/api/workspaces", headers={"Authorization": f"Bearer {owner['accessToken']}"}
    ).json()["workspaces"]
    assert [(w["key"], w["role"]) for w in listing] == [("DEMO", "OWNER")]


def test_reset_requires_authentication(client):
    assert client.post("/api/demo/reset").status_code == 401


def test_demo_disabled(client, alice, demo_disabled):
    login = client.post("/api/auth/demo", json={"type": "owner"})
    reset = client.post("/api/demo/reset", headers=alice[0])

    assert login.status_code == 403
    assert login.json()["message"] == "Demo mode disabled"
    assert reset.status_code == 403
    assert reset.json()["code"] == "forbidden"


def test_reset_keeps_notifications_from_other_workspaces(
    client, db_session, realtime, alice, workspace
):
    demo = demo_service.reset_demo_data(db_session)
    owner = demo_service.ensure_demo_users(db_session).owner
    for workspace_id in (demo.id, uuid.UUID(workspace["id"])):
        notification_service.create_notification(
            db_session,
            realtime,
            user_id=owner.id,
            type="mention",
            message="ping",
            workspace_id=workspace_id,
        )
    db_session.commit()

    demo_service.reset_demo_data(db_session)

    remaining = db_session.execute(
        select(Notification.workspace_id).where(Notification.user_id == owner.id)
    ).scalars().all()
    assert remaining == [uuid.UUID(workspace["id"])]
