from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from civic_hub.client.base import Path
from civic_hub.client.primary import PrimaryClient
from civic_hub.client.secondary import SecondaryClient
from civic_hub.main import app
from civic_hub.models.issue import IssueCreate, IssueQuery
from civic_hub.models.user import LoginRequest
from civic_hub.routes import health
from civic_hub.services import (
    auth_service,
    comment_service,
    issue_service,
    user_service,
    vote_service,
)


@pytest.fixture
def api(monkeypatch, fake_db):
    """TestClient whose service singletons all run against fake_db."""
    issues = issue_service.IssueService(fake_db)
    monkeypatch.setattr(auth_service, "_auth_service", auth_service.AuthService(fake_db, auth_client_factory=lambda: fake_db))
    monkeypatch.setattr(issue_service, "_issue_service", issues)
    monkeypatch.setattr(vote_service, "_vote_service", vote_service.VoteService(fake_db))
    monkeypatch.setattr(comment_service, "_comment_service", comment_service.CommentService(fake_db))
    monkeypatch.setattr(user_service, "_user_service", user_service.UserService(fake_db, issues))
    monkeypatch.setattr(health, "get_db", lambda: fake_db)
    fake_db.auth.add_account("jane@example.com", "secret123", user_id="user-1")
    fake_db.auth.add_account("omar@example.com", "secret456", user_id="user-2")
    return TestClient(app)


def _login(api, email="jane@example.com", password="secret123") -> dict:
    response = api.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    token = response.json()["data"]["session"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


def test_health(api):
    body = api.get("/health").json()
    assert body["status"] == "OK"
    assert body["service"] == "Civic Issue Hub"


def test_database_health(api):
    assert api.get("/health/db").json()["connected"] is True


def test_login_then_me_returns_same_user(api):
    login = api.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret123"})
    body = login.json()
    headers = {"Authorization": f"Bearer {body['data']['session']['access_token']}"}

    me = api.get("/api/auth/me", headers=headers).json()

    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert me["data"]["id"] == body["data"]["user"]["id"] == "user-1"


def test_bad_credentials(api):
    response = api.post("/api/auth/login", json={"email": "jane@example.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_missing_token(api, issue_fields):
    response = api.post("/api/issues", json=issue_fields)
    assert response.status_code == 401
    assert response.json()["error"] == "Access token required"


def test_short_title_is_rejected_with_details(api, fake_db, issue_fields):
    issue_fields["title"] = "abc"

    response = api.post("/api/issues", json=issue_fields, headers=_login(api))

    body = response.json()
    assert response.status_code == 400
    assert body["error"] == "Validation failed"
    assert body["details"][0]["field"] == "title"
    assert fake_db.tables.get("civic_issues", []) == []


def test_create_then_list(api, issue_fields):
    headers = _login(api)

    created = api.post("/api/issues", json=issue_fields, headers=headers)
    listed = api.get("/api/issues", params={"status": "pending", "limit": 5}).json()

    assert created.status_code == 201
    assert created.json()["data"]["status"] == "pending"
    assert listed["pagination"] == {"limit": 5, "offset": 0, "total": 1}
    assert listed["data"][0]["title"] == issue_fields["title"]


def test_idempotency_key_header_applies_once(api, fake_db, issue_fields):
    headers = {**_login(api), "Idempotency-Key": "report-1"}

    first = api.post("/api/issues", json=issue_fields, headers=headers).json()
    second = api.post("/api/issues", json=issue_fields, headers=headers).json()

    assert first["data"]["id"] == second["data"]["id"]
    assert len(fake_db.tables["civic_issues"]) == 1


def test_invalid_sort_field(api):
    response = api.get("/api/issues", params={"sort_by": "secret_column"})
    assert response.status_code == 400


def test_missing_issue(api):
    response = api.get("/api/issues/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "Issue not found"


def test_only_owner_can_edit(api, issue_fields):
    issue_id = api.post("/api/issues", json=issue_fields, headers=_login(api)).json()["data"]["id"]
    other = _login(api, "omar@example.com", "secret456")

    response = api.put(f"/api/issues/{issue_id}", json={"status": "resolved"}, headers=other)

    assert response.status_code == 403
    assert response.json()["message"] == "You can only update your own issues"


def test_upvote_toggle_messages(api, issue_fields):
    headers = _login(api)
    issue_id = api.post("/api/issues", json=issue_fields, headers=headers).json()["data"]["id"]

    added = api.post(f"/api/issues/{issue_id}/upvote", headers=headers).json()
    removed = api.post(f"/api/issues/{issue_id}/upvote", headers=headers).json()

    assert added["message"] == "Upvote added successfully"
    assert added["data"]["upvotes"] == 1
    assert removed["message"] == "Upvote removed successfully"
    assert removed["data"]["upvotes"] == 0


def test_comment_and_stats(api, issue_fields):
    headers = _login(api)
    issue_id = api.post("/api/issues", json=issue_fields, headers=headers).json()["data"]["id"]

    comment = api.post(f"/api/issues/{issue_id}/comments", json={"content": "Still there today"}, headers=headers)
    stats = api.get("/api/users/stats", headers=headers).json()["data"]

    assert comment.status_code == 201
    assert stats["total_issues"] == 1
    assert stats["total_comments"] == 1


@pytest.mark.asyncio
async def test_primary_client_against_app(api, store):
    client = PrimaryClient(store, base_url="http://testserver/api", transport=httpx.ASGITransport(app=app))

    auth = await client.login(LoginRequest(email="jane@example.com", password="secret123"))
    me = await client.current_user()
    await client.aclose()

    assert store.provenance is Path.PRIMARY
    assert me.id == auth.user.id == "user-1"


@pytest.mark.asyncio
async def test_both_paths_page_through_the_same_order(api, fake_db, store):

    issues = issue_service.IssueService(fake_db)
    for n in range(45):
        issues.create_issue("user-1", IssueCreate(
            title=f"Reported issue {n}",
            description="Something on this street needs fixing.",
            category="Infrastructure",
        ))
    primary = PrimaryClient(store, base_url="http://testserver/api", transport=httpx.ASGITransport(app=app))
    secondary = SecondaryClient(store, client_factory=lambda: fake_db)

    def ids(page):
        return [issue.id for issue in page.items]

    primary_pages = [await primary.list_issues(IssueQuery(limit=20, offset=o)) for o in (0, 20)]
    secondary_pages = [await secondary.list_issues(IssueQuery(limit=20, offset=o)) for o in (0, 20)]
    await primary.aclose()

    assert ids(primary_pages[0]) == ids(secondary_pages[0])
    assert ids(primary_pages[1]) == ids(secondary_pages[1])
    assert not set(ids(primary_pages[0])) & set(ids(primary_pages[1]))
    assert primary_pages[0].total == secondary_pages[0].total == 45
