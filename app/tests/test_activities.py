import pytest


@pytest.fixture
def activity_url(workspace) -> str:
    return f"/api/workspaces/{workspace['id']}/activities"


def _seed(client, workspace, headers) -> dict:
    issue = client.post(
        f"/api/workspaces/{workspace['id']}/issues",
        json={"title": "Crash"},
        headers=headers,
    ).json()["issue"]
    client.post(
        f"/api/issues/{issue['_id']}/comments", json={"body": "seen it"}, headers=headers
    )
    client.patch(
        f"/api/workspaces/{workspace['id']}/issues/{issue['_id']}",
        json={"status": "IN_PROGRESS"},
        headers=headers,
    )
    return issue


def test_activities_are_newest_first(client, alice, workspace, activity_url):
    issue = _seed(client, workspace, alice[0])

    response = client.get(activity_url, headers=alice[0])

    assert response.status_code == 200
    activities = response.json()["activities"]
    assert [a["action"] for a in activities] == [
        "issue_updated",
        "comment_added",
        "issue_created",
    ]
    latest = activities[0]
    assert latest["actorId"]["email"] == "alice@example.com"
    assert latest["issueId"]["ticketId"] == issue["ticketId"]
    assert latest["issueId"]["status"] == "IN_PROGRESS"
    assert latest["meta"] == {
        "fields": ["status"],
        "changes": {"status": {"from": "OPEN", "to": "IN_PROGRESS"}},
    }
    assert activities[2]["meta"] == {"title": "Crash"}


def test_activity_limit_is_clamped(client, alice, workspace, activity_url):
    _seed(client, workspace, alice[0])

    one = client.get(activity_url, params={"limit": 1}, headers=alice[0])
    zero = client.get(activity_url, params={"limit": 0}, headers=alice[0])
    huge = client.get(activity_url, params={"limit": 500}, headers=alice[0])

    assert len(one.json()["activities"]) == 1
    assert len(zero.json()["activities"]) == 1
    assert len(huge.json()["activities"]) == 3


def test_activities_visible_to_members(client, alice, joined_bob, workspace, activity_url):
    _seed(client, workspace, alice[0])

    response = client.get(activity_url, headers=joined_bob[0])

    assert response.status_code == 200
    assert len(response.json()["activities"]) == 3
