from __future__ import annotations

import json

import httpx
import pytest

from civic_hub.client.base import Path
from civic_hub.client.primary import PrimaryClient
from civic_hub.client.session_store import Credential
from civic_hub.core.errors import AuthError, NetworkError, NotFoundError, UpstreamError, ValidationError
from civic_hub.models.issue import IssueCreate, IssueQuery
from civic_hub.models.user import LoginRequest, RegisterRequest

BASE_URL = "http://api.test/api"


class Recorder:
    """MockTransport handler that replies from a route table and keeps every request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.routes[(request.method, request.url.path)]
        if isinstance(reply, Exception):
            raise reply
        status, body = reply
        return httpx.Response(status, json=body)


def _client(store, routes):
    recorder = Recorder(routes)
    client = PrimaryClient(store, base_url=BASE_URL, timeout=1.0, transport=httpx.MockTransport(recorder))
    return client, recorder


LOGIN_BODY = {
    "success": True,
    "message": "Login successful",
    "data": {
        "user": {"id": "user-1", "email": "jane@example.com"},
        "session": {"access_token": "tok-1", "refresh_token": "ref-1", "token_type": "bearer"},
    },
}


@pytest.mark.asyncio
async def test_login_stores_primary_credential_and_authorizes_next_call(store):
    client, recorder = _client(store, {
        ("POST", "/api/auth/login"): (200, LOGIN_BODY),
        ("GET", "/api/auth/me"): (200, {"success": True, "data": {"id": "user-1", "email": "jane@example.com"}}),
    })

    auth = await client.login(LoginRequest(email="jane@example.com", password="secret"))
    me = await client.current_user()

    assert auth.session.access_token == "tok-1"
    assert store.get_credential() == Credential(
        access_token="tok-1", refresh_token="ref-1", provenance=Path.PRIMARY, user_id="user-1"
    )
    assert me.id == auth.user.id
    assert recorder.requests[1].headers["Authorization"] == "Bearer tok-1"
    await client.aclose()


@pytest.mark.asyncio
async def test_unconfirmed_registration_stores_nothing(store):
    client, _ = _client(store, {
        ("POST", "/api/auth/register"): (201, {"success": True, "data": {"user": {"id": "u2"}, "session": None}}),
    })

    auth = await client.register(RegisterRequest(email="new@example.com", password="secret123"))

    assert auth.session is None
    assert store.get_credential() is None


@pytest.mark.asyncio
async def test_list_issues_sends_query_and_reads_pagination(store, sample_issue):
    client, recorder = _client(store, {
        ("GET", "/api/issues"): (200, {
            "success": True,
            "data": [sample_issue],
            "pagination": {"limit": 10, "offset": 20, "total": 42},
        }),
    })

    page = await client.list_issues(IssueQuery(status="pending", limit=10, offset=20))

    params = recorder.requests[0].url.params
    assert params["status"] == "pending"
    assert params["limit"] == "10"
    assert params["offset"] == "20"
    assert "Authorization" not in recorder.requests[0].headers
    assert page.total == 42
    assert page.items[0].id == "issue-1"
    assert page.items[0].location_coordinates.lat == pytest.approx(40.7128)


@pytest.mark.asyncio
async def test_mutation_carries_idempotency_key(store, sample_issue, issue_fields):
    store.set_credential(Credential(access_token="tok", provenance=Path.PRIMARY))
    client, recorder = _client(store, {
        ("POST", "/api/issues"): (201, {"success": True, "data": sample_issue}),
    })

    issue = await client.create_issue(IssueCreate(**issue_fields), idempotency_key="key-123")

    request = recorder.requests[0]
    assert request.headers["Idempotency-Key"] == "key-123"
    assert json.loads(request.content)["title"] == issue_fields["title"]
    assert issue.id == "issue-1"


@pytest.mark.asyncio
async def test_authenticated_call_without_credential_never_hits_network(store):
    client, recorder = _client(store, {})

    with pytest.raises(AuthError):
        await client.user_stats()
    assert recorder.requests == []


@pytest.mark.parametrize("status,body,expected", [
    (400, {"success": False, "error": "Validation failed", "message": "title too short"}, ValidationError),
    (401, {"success": False, "error": "Invalid token", "message": "expired"}, AuthError),
    (404, {"success": False, "error": "Issue not found", "message": "The requested issue does not exist"}, NotFoundError),
    (500, {"success": False, "error": "Internal server error", "message": "boom"}, UpstreamError),
])
@pytest.mark.asyncio
async def test_error_statuses_map_to_typed_errors(store, status, body, expected):
    client, _ = _client(store, {("GET", "/api/issues/x"): (status, body)})

    with pytest.raises(expected) as exc:
        await client.get_issue("x")

    assert exc.value.message == body["message"]
    assert exc.value.error == body["error"]


@pytest.mark.asyncio
async def test_connection_failure_is_network_error(store):
    client, _ = _client(store, {("GET", "/api/issues/x"): httpx.ConnectError("refused")})

    with pytest.raises(NetworkError) as exc:
        await client.get_issue("x")
    assert exc.value.retryable


@pytest.mark.asyncio
async def test_timeout_is_network_error(store):
    client, _ = _client(store, {("GET", "/api/issues/x"): httpx.ReadTimeout("slow")})

    with pytest.raises(NetworkError):
        await client.get_issue("x")


@pytest.mark.asyncio
async def test_upvote_result(store):
    store.set_credential(Credential(access_token="tok", provenance=Path.PRIMARY))
    client, _ = _client(store, {
        ("POST", "/api/issues/issue-1/upvote"): (200, {
            "success": True,
            "message": "Upvote added successfully",
            "data": {"issue_id": "issue-1", "upvoted": True, "upvotes": 4},
        }),
    })

    result = await client.toggle_upvote("issue-1", idempotency_key="k")

    assert result.upvoted is True
    assert result.upvotes == 4


@pytest.mark.asyncio
async def test_logout_without_session_is_a_no_op(store):
    client, recorder = _client(store, {})
    await client.logout()
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_health_check_uses_server_root(store):
    client, recorder = _client(store, {("GET", "/health"): (200, {"status": "OK"})})

    assert (await client.health_check())["status"] == "OK"
    assert recorder.requests[0].url.path == "/health"


@pytest.mark.asyncio
async def test_malformed_success_body_is_upstream_error(store):
    client, _ = _client(store, {("GET", "/api/issues/x"): (200, {"success": True, "data": {"title": "no id"}})})

    with pytest.raises(UpstreamError):
        await client.get_issue("x")
