import uuid
from datetime import UTC, datetime

from sqlalchemy import select

from app.models.workspaces import WorkspaceInvite, WorkspaceMember


def _members(client, workspace_id, headers) -> dict[str, dict]:
    response = client.get(f"/api/workspaces/{workspace_id}/members", headers=headers)
    assert response.status_code == 200
    return {m["user"]["email"]: m for m in response.json()["members"]}


def test_create_workspace_makes_creator_owner(client, alice):
    headers, user = alice

    response = client.post(
        "/api/workspaces",
        json={"name": "  Acme  ", "key": " acme1 "},
        headers=headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "OWNER"
    assert body["workspace"]["name"] == "Acme"
    assert body["workspace"]["key"] == "ACME1"
    assert body["workspace"]["ownerId"] == user["id"]

    listing = client.get("/api/workspaces", headers=headers).json()["workspaces"]
    assert [(w["key"], w["role"]) for w in listing] == [("ACME1", "OWNER")]


def test_workspace_key_must_be_unique(client, alice, bob, workspace):
    response = client.post(
        "/api/workspaces",
        json={"name": "Other", "key": "ACME"},
        headers=bob[0],
    )

    assert response.status_code == 409
    assert response.json()["message"] == "Workspace key already in use"


def test_workspace_key_is_validated(client, alice):
    for key in ("a", "TOOLONGKEY1", "AC-ME"):
        response = client.post(
            "/api/workspaces",
            json={"name": "Acme", "key": key},
            headers=alice[0],
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


def test_invite_and_join(client, alice, bob, workspace):
    invite = client.post(f"/api/workspaces/{workspace['id']}/invite", headers=alice[0])

    assert invite.status_code == 201
    body = invite.json()
    assert len(body["inviteCode"]) == 8
    assert body["inviteLink"] == f"http://localhost:5173/join?code={body['inviteCode']}"

    joined = client.post(
        "/api/workspaces/join",
        json={"code": body["inviteCode"]},
        headers=bob[0],
    )
    assert joined.status_code == 200
    assert joined.json()["role"] == "MEMBER"
    assert joined.json()["workspace"]["id"] == workspace["id"]

    again = client.post(
        "/api/workspaces/join",
        json={"code": body["inviteCode"]},
        headers=bob[0],
    )
    assert again.status_code == 200
    assert again.json()["role"] == "MEMBER"

    members = _members(client, workspace["id"], alice[0])
    assert members["alice@example.com"]["role"] == "OWNER"
    assert members["bob@example.com"]["role"] == "MEMBER"
    assert set(members["bob@example.com"]["user"]) == {"_id", "name", "email", "avatarUrl"}


def test_join_with_unknown_code(client, bob):
    response = client.post(
        "/api/workspaces/join", json={"code": "deadbeef"}, headers=bob[0]
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invite invalid"


def test_join_with_expired_code(client, db_session, alice, bob, workspace):
    code = client.post(
        f"/api/workspaces/{workspace['id']}/invite", headers=alice[0]
    ).json()["inviteCode"]
    invite = db_session.execute(
        select(WorkspaceInvite).where(WorkspaceInvite.code == code)
    ).scalar_one()
    invite.expires_at = datetime(2000, 1, 1, tzinfo=UTC)
    db_session.commit()

    response = client.post("/api/workspaces/join", json={"code": code}, headers=bob[0])

    assert response.status_code == 400
    assert response.json()["message"] == "Invite expired"


def test_member_cannot_invite(client, joined_bob, workspace):
    response = client.post(
        f"/api/workspaces/{workspace['id']}/invite", headers=joined_bob[0]
    )

    assert response.status_code == 403
    assert response.json() == {
        "message": "Insufficient role",
        "code": "forbidden",
        "details": None,
    }


def test_non_member_gets_not_found(client, bob, workspace):
    for path in ("members", "issues", "articles", "activities"):
        response = client.get(f"/api/workspaces/{workspace['id']}/{path}", headers=bob[0])
        assert response.status_code == 404
        assert response.json()["message"] == "Workspace not found"


def test_owner_promotes_member_to_admin(client, db_session, alice, joined_bob, workspace):
    member_id = _members(client, workspace["id"], alice[0])["bob@example.com"]["id"]

    response = client.patch(
        f"/api/workspaces/{workspace['id']}/members/{member_id}",
        json={"role": "ADMIN"},
        headers=alice[0],
    )

    assert response.status_code == 200
    assert response.json()["member"]["role"] == "ADMIN"
    assert response.json()["member"]["user"]["email"] == "bob@example.com"

    invite = client.post(
        f"/api/workspaces/{workspace['id']}/invite", headers=joined_bob[0]
    )
    assert invite.status_code == 201


def test_admin_cannot_change_roles(client, alice, joined_bob, workspace):
    members = _members(client, workspace["id"], alice[0])
    client.patch(
        f"/api/workspaces/{workspace['id']}/members/{members['bob@example.com']['id']}",
        json={"role": "ADMIN"},
        headers=alice[0],
    )

    response = client.patch(
        f"/api/workspaces/{workspace['id']}/members/{members['alice@example.com']['id']}",
        json={"role": "MEMBER"},
        headers=joined_bob[0],
    )

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_member_cannot_change_roles(client, alice, joined_bob, workspace):
    member_id = _members(client, workspace["id"], alice[0])["bob@example.com"]["id"]

    response = client.patch(
        f"/api/workspaces/{workspace['id']}/members/{member_id}",
        json={"role": "OWNER"},
        headers=joined_bob[0],
    )

    assert response.status_code == 403


def test_owner_cannot_demote_self(client, db_session, alice, workspace):
    member_id = _members(client, workspace["id"], alice[0])["alice@example.com"]["id"]

    response = client.patch(
        f"/api/workspaces/{workspace['id']}/members/{member_id}",
        json={"role": "ADMIN"},
        headers=alice[0],
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Owner cannot remove role"
    stored = db_session.execute(
        select(WorkspaceMember.role).where(
            WorkspaceMember.user_id == uuid.UUID(alice[1]["id"])
        )
    ).scalar_one()
    assert stored == "OWNER"


def test_role_update_for_unknown_member(client, alice, workspace):
    response = client.patch(
        f"/api/workspaces/{workspace['id']}/members/00000000-0000-0000-0000-000000000000",
        json={"role": "ADMIN"},
        headers=alice[0],
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Member not found"


def test_member_overview(client, alice, joined_bob, workspace):
    bob_id = joined_bob[1]["id"]
    issues = f"/api/workspaces/{workspace['id']}/issues"
    client.post(issues, json={"title": "Assigned", "assigneeId": bob_id}, headers=alice[0])
    created = client.post(issues, json={"title": "Mine"}, headers=joined_bob[0]).json()
    client.post(
        f"/api/workspaces/{workspace['id']}/articles",
        json={"title": "Runbook", "linkedIssueIds": [created["issue"]["_id"]]},
        headers=joined_bob[0],
    )
    member_id = _members(client, workspace["id"], alice[0])["bob@example.com"]["id"]

    response = client.get(
        f"/api/workspaces/{workspace['id']}/members/{member_id}/overview",
        headers=alice[0],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["member"]["role"] == "MEMBER"
    assert body["stats"] == {"issuesCreated": 1, "issuesAssigned": 1, "kbWorkedOn": 1}
    assert [i["title"] for i in body["recent"]["issuesCreated"]] == ["Mine"]
    assert [i["ticketId"] for i in body["recent"]["issuesAssigned"]] == ["ACME-1"]
    assert body["recent"]["kbWorkedOn"][0]["kbId"] == "ACME-KB-1"
