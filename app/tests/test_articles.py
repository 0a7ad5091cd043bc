import pytest
from sqlalchemy import select

from app.models.activity import Activity


@pytest.fixture
def urls(workspace) -> dict[str, str]:
    base = f"/api/workspaces/{workspace['id']}"
    return {"issues": f"{base}/issues", "articles": f"{base}/articles"}


def _issue(client, urls, headers, title="Bug") -> dict:
    return client.post(urls["issues"], json={"title": title}, headers=headers).json()["issue"]


def test_create_article_assigns_kb_id(client, db_session, realtime, alice, urls):
    first = client.post(
        urls["articles"], json={"title": "Runbook", "body": "Restart it"}, headers=alice[0]
    )
    second = client.post(urls["articles"], json={"title": "FAQ"}, headers=alice[0])

    assert first.status_code == 201
    article = first.json()["article"]
    assert article["kbId"] == "ACME-KB-1"
    assert article["body"] == "Restart it"
    assert article["linkedIssueIds"] == []
    assert article["createdBy"]["email"] == "alice@example.com"
    assert article["updatedBy"]["email"] == "alice@example.com"
    assert second.json()["article"]["kbId"] == "ACME-KB-2"

    actions = db_session.execute(select(Activity.action)).scalars().all()
    assert actions == ["kb_created", "kb_created"]
    assert realtime.types() == ["kb_created", "kb_created"]


def test_kb_counter_is_independent_of_issues(client, alice, urls):
    _issue(client, urls, alice[0])
    _issue(client, urls, alice[0])

    article = client.post(urls["articles"], json={"title": "Doc"}, headers=alice[0])

    assert article.json()["article"]["kbId"] == "ACME-KB-1"


def test_create_article_with_links(client, db_session, alice, urls):
    issue = _issue(client, urls, alice[0])

    response = client.post(
        urls["articles"],
        json={"title": "Runbook", "linkedIssueIds": [issue["_id"], issue["_id"]]},
        headers=alice[0],
    )

    assert response.status_code == 201
    assert response.json()["article"]["linkedIssueIds"] == [issue["_id"]]
    linked = db_session.execute(
        select(Activity).where(Activity.action == "kb_linked")
    ).scalar_one()
    assert str(linked.issue_id) == issue["_id"]


def test_article_requires_title(client, alice, urls):
    response = client.post(urls["articles"], json={"title": " ", "body": "x"}, headers=alice[0])

    assert response.status_code == 400
    assert response.json()["message"] == "Title is required"


def test_article_link_validation(client, alice, urls):
    other = client.post(
        "/api/workspaces", json={"name": "Other", "key": "OTH"}, headers=alice[0]
    ).json()["workspace"]
    foreign = client.post(
        f"/api/workspaces/{other['id']}/issues", json={"title": "Elsewhere"}, headers=alice[0]
    ).json()["issue"]

    bad_id = client.post(
        urls["articles"], json={"title": "Doc", "linkedIssueIds": ["nope"]}, headers=alice[0]
    )
    cross = client.post(
        urls["articles"],
        json={"title": "Doc", "linkedIssueIds": [foreign["_id"]]},
        headers=alice[0],
    )

    assert bad_id.status_code == 400
    assert bad_id.json()["message"] == "Invalid id"
    assert cross.status_code == 400
    assert cross.json()["message"] == "Invalid issue link"


def test_list_articles_filters_by_issue(client, alice, urls):
    issue = _issue(client, urls, alice[0])
    client.post(urls["articles"], json={"title": "Unlinked"}, headers=alice[0])
    client.post(
        urls["articles"],
        json={"title": "Linked", "linkedIssueIds": [issue["_id"]]},
        headers=alice[0],
    )

    everything = client.get(urls["articles"], headers=alice[0]).json()["articles"]
    filtered = client.get(
        urls["articles"], params={"issueId": issue["_id"]}, headers=alice[0]
    ).json()["articles"]

    assert [a["title"] for a in everything] == ["Linked", "Unlinked"]
    assert [a["title"] for a in filtered] == ["Linked"]


def test_update_article_links_and_records_editor(
    client, db_session, alice, joined_bob, urls
):
    issue = _issue(client, urls, alice[0])
    article = client.post(urls["articles"], json={"title": "Doc"}, headers=alice[0]).json()[
        "article"
    ]

    response = client.patch(
        f"{urls['articles']}/{article['_id']}",
        json={"linkedIssueIds": [issue["_id"]], "body": "Updated"},
        headers=joined_bob[0],
    )

    assert response.status_code == 200
    updated = response.json()["article"]
    assert updated["title"] == "Doc"
    assert updated["body"] == "Updated"
    assert updated["linkedIssueIds"] == [issue["_id"]]
    assert updated["updatedBy"]["email"] == "bob@example.com"
    assert updated["createdBy"]["email"] == "alice@example.com"

    linked = db_session.execute(
        select(Activity).where(Activity.action == "kb_linked")
    ).scalar_one()
    assert issue["_id"] in linked.meta

    retitled = client.patch(
        f"{urls['articles']}/{article['_id']}", json={"title": "Doc v2"}, headers=alice[0]
    )
    assert retitled.json()["article"]["linkedIssueIds"] == [issue["_id"]]
    assert db_session.execute(
        select(Activity.action).where(Activity.action == "kb_updated")
    ).scalars().all() == ["kb_updated"]


def test_update_article_rejects_blank_title(client, alice, urls):
    article = client.post(urls["articles"], json={"title": "Doc"}, headers=alice[0]).json()[
        "article"
    ]

    response = client.patch(
        f"{urls['articles']}/{article['_id']}", json={"title": ""}, headers=alice[0]
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Title is required"


def test_delete_article_requires_manager(client, db_session, alice, joined_bob, urls):
    article = client.post(urls["articles"], json={"title": "Doc"}, headers=alice[0]).json()[
        "article"
    ]
    url = f"{urls['articles']}/{article['_id']}"

    assert client.delete(url, headers=joined_bob[0]).status_code == 403

    response = client.delete(url, headers=alice[0])
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    missing = client.get(url, headers=alice[0])
    assert missing.status_code == 404
    assert missing.json()["message"] == "Article not found"
    assert "kb_deleted" in db_session.execute(select(Activity.action)).scalars().all()


def test_deleting_issue_unlinks_articles(client, alice, urls):
    issue = _issue(client, urls, alice[0])
    article = client.post(
        urls["articles"],
        json={"title": "Doc", "linkedIssueIds": [issue["_id"]]},
        headers=alice[0],
    ).json()["article"]

    client.delete(f"{urls['issues']}/{issue['_id']}", headers=alice[0])

    fetched = client.get(f"{urls['articles']}/{article['_id']}", headers=alice[0])
    assert fetched.status_code == 200
    assert fetched.json()["article"]["linkedIssueIds"] == []
