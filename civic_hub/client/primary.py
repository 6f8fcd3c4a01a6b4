"""
Primary data path: the Civic Issue Hub REST API over httpx.

Every call carries the stored bearer token when one exists, and mutations
carry an Idempotency-Key header so the server can recognise a replay.
Non-2xx responses become typed errors from the envelope's error/message.
"""

from typing import Any, Dict, Optional
import logging

import httpx

from civic_hub.client import adapters
from civic_hub.client.base import DataPath, Path
from civic_hub.client.session_store import SessionStore, credential_from_session
from civic_hub.core.errors import AuthError, NetworkError, error_for_status
from civic_hub.core.settings import settings
from civic_hub.models.base import ApiResponse
from civic_hub.models.issue import (
    Comment,
    CommentCreate,
    Issue,
    IssueCreate,
    IssuePage,
    IssueQuery,
    IssueUpdate,
    UpvoteResult,
)
from civic_hub.models.user import (
    AuthSession,
    CurrentUser,
    LoginRequest,
    Profile,
    ProfileUpdate,
    RegisterRequest,
    UserStats,
)

logger = logging.getLogger(__name__)


class PrimaryClient(DataPath):
    path = Path.PRIMARY
    REPLAYABLE_MUTATIONS = frozenset({
        "create_issue",
        "update_issue",
        "delete_issue",
        "toggle_upvote",
        "add_comment",
        "update_profile",
    })

    def __init__(
        self,
        session_store: SessionStore,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_store = session_store
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @property
    def root_url(self) -> str:
        """Server root; /health lives here rather than under /api."""
        if self.base_url.endswith("/api"):
            return self.base_url[: -len("/api")]
        return self.base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, authenticated: bool, idempotency_key: Optional[str]) -> Dict[str, str]:
        headers = {}
        credential = self.session_store.get_credential()
        if credential is not None:
            headers["Authorization"] = f"Bearer {credential.access_token}"
        elif authenticated:
            raise AuthError("Please sign in first", error="Access token required")
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> ApiResponse:
        headers = self._headers(authenticated, idempotency_key)
        try:
            response = await self._client.request(method, url, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {url} timed out after {self.timeout}s: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            body = body if isinstance(body, dict) else {}
            message = body.get("message") or f"HTTP error! status: {response.status_code}"
            logger.debug(f"{method} {url} -> {response.status_code}: {message}")
            raise error_for_status(
                response.status_code,
                message,
                error=body.get("error"),
                details=body.get("details"),
            )

        parsed = adapters.parse_envelope(body)
        if not parsed.success:
            raise error_for_status(500, parsed.message or "Request failed", error=parsed.error)
        return parsed

    def _remember(self, auth: AuthSession) -> AuthSession:
        credential = credential_from_session(auth, Path.PRIMARY)
        if credential is not None:
            self.session_store.set_credential(credential)
        return auth

    # Auth

    async def register(self, request: RegisterRequest) -> AuthSession:
        response = await self._request("POST", "/auth/register", json=request.model_dump())
        return self._remember(adapters.auth_session(response.data))

    async def login(self, request: LoginRequest) -> AuthSession:
        response = await self._request("POST", "/auth/login", json=request.model_dump())
        return self._remember(adapters.auth_session(response.data))

    async def refresh(self, refresh_token: str) -> AuthSession:
        response = await self._request("POST", "/auth/refresh", json={"refresh_token": refresh_token})
        return self._remember(adapters.auth_session(response.data))

    async def logout(self) -> None:
        if self.session_store.get_credential() is None:
            return
        await self._request("POST", "/auth/logout", authenticated=True)

    async def current_user(self) -> CurrentUser:
        response = await self._request("GET", "/auth/me", authenticated=True)
        return adapters.to_model(CurrentUser, response.data)

    # Issues

    async def list_issues(self, query: IssueQuery) -> IssuePage:
        response = await self._request("GET", "/issues", params=query.to_params())
        return adapters.issue_page_from_envelope(response, query.limit, query.offset)

    async def get_issue(self, issue_id: str) -> Issue:
        response = await self._request("GET", f"/issues/{issue_id}")
        return adapters.issue(response.data)

    async def create_issue(self, fields: IssueCreate, idempotency_key: Optional[str] = None) -> Issue:
        response = await self._request(
            "POST",
            "/issues",
            json=fields.model_dump(mode="json", exclude_none=True),
            authenticated=True,
            idempotency_key=idempotency_key,
        )
        return adapters.issue(response.data)

    async def update_issue(self, issue_id: str, fields: IssueUpdate, idempotency_key: Optional[str] = None) -> Issue:
        response = await self._request(
            "PUT",
            f"/issues/{issue_id}",
            json=fields.to_row(),
            authenticated=True,
            idempotency_key=idempotency_key,
        )
        return adapters.issue(response.data)

    async def delete_issue(self, issue_id: str, idempotency_key: Optional[str] = None) -> None:
        await self._request("DELETE", f"/issues/{issue_id}", authenticated=True, idempotency_key=idempotency_key)

    async def toggle_upvote(self, issue_id: str, idempotency_key: Optional[str] = None) -> UpvoteResult:
        response = await self._request(
            "POST",
            f"/issues/{issue_id}/upvote",
            authenticated=True,
            idempotency_key=idempotency_key,
        )
        return adapters.upvote_result(response.data, issue_id)

    async def add_comment(self, issue_id: str, comment: CommentCreate, idempotency_key: Optional[str] = None) -> Comment:
        response = await self._request(
            "POST",
            f"/issues/{issue_id}/comments",
            json=comment.model_dump(),
            authenticated=True,
            idempotency_key=idempotency_key,
        )
        return adapters.to_model(Comment, response.data)

    # Users

    async def get_profile(self) -> CurrentUser:
        response = await self._request("GET", "/users/profile", authenticated=True)
        return adapters.to_model(CurrentUser, response.data)

    async def update_profile(self, update: ProfileUpdate, idempotency_key: Optional[str] = None) -> Profile:
        response = await self._request(
            "PUT",
            "/users/profile",
            json=update.model_dump(exclude_none=True),
            authenticated=True,
            idempotency_key=idempotency_key,
        )
        return adapters.to_model(Profile, response.data)

    async def user_issues(self, query: IssueQuery) -> IssuePage:
        response = await self._request("GET", "/users/issues", params=query.to_params(), authenticated=True)
        return adapters.issue_page_from_envelope(response, query.limit, query.offset)

    async def user_upvoted(self, limit: int = 20, offset: int = 0) -> IssuePage:
        response = await self._request(
            "GET",
            "/users/upvoted",
            params={"limit": limit, "offset": offset},
            authenticated=True,
        )
        return adapters.issue_page_from_envelope(response, limit, offset)

    async def user_stats(self) -> UserStats:
        response = await self._request("GET", "/users/stats", authenticated=True)
        return adapters.to_model(UserStats, response.data)

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._client.get(f"{self.root_url}/health")
        except httpx.TimeoutException as e:
            raise NetworkError(f"Health check timed out: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"Health check failed: {e}")
        if not response.is_success:
            raise error_for_status(response.status_code, f"HTTP error! status: {response.status_code}")
        try:
            return response.json()
        except ValueError:
            raise error_for_status(500, "Health check returned a non-JSON body")
