"""
Path selection and fallback.

Every operation goes through FallbackOrchestrator.execute():

1. Inputs are validated before any network call.
2. The preferred path for the operation's kind is tried.
3. Only a NetworkError or UpstreamError earns one replay on the other
   path. Semantic failures (validation, auth, forbidden, not found,
   conflict) surface immediately.
4. A mutation is replayed only when it carries an idempotency marker and
   the other path can apply it by that marker.
5. Whichever path succeeds becomes the preferred path for that kind.

Preferences are kept per operation kind, so a failing upvote never moves
issue listing or sign-in to the other path.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Type
import logging

from pydantic import BaseModel, ValidationError as PydanticValidationError

from civic_hub.client.base import DataPath, Path
from civic_hub.client.intents import OperationIntent, OperationKind
from civic_hub.client.reconciliation import ReconciliationState
from civic_hub.client.session_store import SessionStore
from civic_hub.core.errors import AuthError, CivicHubError, from_pydantic
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


class PathSelector:
    """
    Preferred path per operation kind.

    Updates swap in a new mapping in one assignment, so a concurrent reader
    sees either the old preference or the new one.
    """

    def __init__(self, default: Path = Path.PRIMARY, overrides: Optional[Mapping[OperationKind, Path]] = None):
        preferences = {kind: default for kind in OperationKind}
        preferences.update(overrides or {})
        self._preferences: Dict[OperationKind, Path] = preferences

    def preferred(self, kind: OperationKind) -> Path:
        return self._preferences[kind]

    def prefer(self, kind: OperationKind, path: Path) -> None:
        if self._preferences[kind] is path:
            return
        updated = dict(self._preferences)
        updated[kind] = path
        self._preferences = updated
        logger.info(f"Preferred path for {kind.value} is now {path.value}")

    def snapshot(self) -> Dict[OperationKind, Path]:
        return dict(self._preferences)


@dataclass
class ConnectivityReport:
    primary_ok: bool
    secondary_ok: bool
    primary_error: Optional[str] = None
    secondary_error: Optional[str] = None

    @property
    def any_available(self) -> bool:
        return self.primary_ok or self.secondary_ok


def _validated(model: Type[BaseModel], data: Any) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e)


class FallbackOrchestrator:
    def __init__(
        self,
        primary: DataPath,
        secondary: DataPath,
        session_store: SessionStore,
        selector: Optional[PathSelector] = None,
    ):
        self.clients: Dict[Path, DataPath] = {Path.PRIMARY: primary, Path.SECONDARY: secondary}
        self.session_store = session_store
        self.selector = selector or PathSelector()

    @property
    def primary(self) -> DataPath:
        return self.clients[Path.PRIMARY]

    @property
    def secondary(self) -> DataPath:
        return self.clients[Path.SECONDARY]

    async def execute(self, intent: OperationIntent) -> Any:
        state = ReconciliationState(intent)
        path = self.selector.preferred(intent.kind)

        try:
            return await self._attempt(state, path)
        except CivicHubError as first_error:
            if not first_error.retryable:
                raise
            alternate = self.clients[path.alternate]
            blocker = state.replay_blocker(alternate)
            if blocker is not None:
                logger.warning(f"{intent.name} failed on {path.value} and will not be replayed: {blocker}")
                raise
            logger.warning(
                f"{intent.name} failed on {path.value} ({first_error.message}); "
                f"retrying once on {alternate.path.value}"
            )

        # The retry's own error, if any, is what the caller sees.
        self.selector.prefer(intent.kind, path.alternate)
        try:
            return await self._attempt(state, path.alternate)
        except CivicHubError as retry_error:
            logger.error(f"{intent.name} failed on both paths; last error: {retry_error.message}")
            raise

    async def _attempt(self, state: ReconciliationState, path: Path) -> Any:
        state.begin_attempt(path)
        client = self.clients[path]
        result = await getattr(client, state.intent.name)(**state.intent.call_kwargs())
        self.selector.prefer(state.intent.kind, path)
        await self._sync_session(client)
        return result

    async def _sync_session(self, client: DataPath) -> None:
        """Re-tag the stored credential when a path is now serving it under its own session."""
        stored = self.session_store.get_credential()
        if stored is None:
            return
        try:
            current = await client.session_credential()
        except CivicHubError as e:
            logger.warning(f"Could not read {client.path.value} session after success: {e.message}")
            return
        if current is not None and current != stored:
            self.session_store.set_credential(current)

    # Auth

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> AuthSession:
        request = _validated(RegisterRequest, {"email": email, "password": password, "display_name": display_name})
        return await self.execute(OperationIntent.create("register", request=request))

    async def sign_in(self, email: str, password: str) -> AuthSession:
        request = _validated(LoginRequest, {"email": email, "password": password})
        return await self.execute(OperationIntent.create("login", request=request))

    async def refresh_session(self) -> AuthSession:
        credential = self.session_store.get_credential()
        if credential is None or not credential.refresh_token:
            raise AuthError("No session to refresh, please sign in", error="Session expired")
        return await self.execute(OperationIntent.create("refresh", refresh_token=credential.refresh_token))

    async def sign_out(self) -> None:
        """
        Sign out everywhere. The primary call is best effort; the secondary
        sign-out always runs and the stored credential is always cleared.
        """
        try:
            await self.primary.logout()
        except CivicHubError as e:
            logger.warning(f"Primary sign-out failed, continuing: {e.message}")
        try:
            await self.secondary.logout()
        finally:
            self.session_store.clear()

    async def current_user(self) -> CurrentUser:
        return await self.execute(OperationIntent.create("current_user"))

    # Issues

    async def list_issues(self, query: Any = None, **filters: Any) -> IssuePage:
        query = _validated(IssueQuery, query if query is not None else filters)
        return await self.execute(OperationIntent.create("list_issues", query=query))

    async def get_issue(self, issue_id: str) -> Issue:
        return await self.execute(OperationIntent.create("get_issue", issue_id=issue_id))

    async def create_issue(self, fields: Any) -> Issue:
        fields = _validated(IssueCreate, fields)
        return await self.execute(OperationIntent.create("create_issue", fields=fields))

    async def update_issue(self, issue_id: str, fields: Any) -> Issue:
        fields = _validated(IssueUpdate, fields)
        return await self.execute(OperationIntent.create("update_issue", issue_id=issue_id, fields=fields))

    async def delete_issue(self, issue_id: str) -> None:
        await self.execute(OperationIntent.create("delete_issue", issue_id=issue_id))

    async def toggle_upvote(self, issue_id: str) -> UpvoteResult:
        return await self.execute(OperationIntent.create("toggle_upvote", issue_id=issue_id))

    async def add_comment(self, issue_id: str, content: str) -> Comment:
        comment = _validated(CommentCreate, {"content": content})
        return await self.execute(OperationIntent.create("add_comment", issue_id=issue_id, comment=comment))

    # Users

    async def get_profile(self) -> CurrentUser:
        return await self.execute(OperationIntent.create("get_profile"))

    async def update_profile(self, fields: Any) -> Profile:
        update = _validated(ProfileUpdate, fields)
        return await self.execute(OperationIntent.create("update_profile", update=update))

    async def user_issues(self, query: Any = None, **filters: Any) -> IssuePage:
        query = _validated(IssueQuery, query if query is not None else filters)
        return await self.execute(OperationIntent.create("user_issues", query=query))

    async def user_upvoted(self, limit: int = 20, offset: int = 0) -> IssuePage:
        page = _validated(IssueQuery, {"limit": limit, "offset": offset})
        return await self.execute(OperationIntent.create("user_upvoted", limit=page.limit, offset=page.offset))

    async def user_stats(self) -> UserStats:
        return await self.execute(OperationIntent.create("user_stats"))

    # Direct-path only

    async def resend_confirmation(self, email: str) -> None:
        await self.secondary.resend_confirmation(email)

    async def reset_password(self, email: str) -> None:
        await self.secondary.reset_password(email)

    async def upload_issue_image(self, filename: str, content: bytes, content_type: str = "image/jpeg") -> str:
        return await self.secondary.upload_issue_image(filename, content, content_type)

    async def issue_summary(self, timeframe: str = "week", category: Optional[str] = None) -> Dict[str, Any]:
        return await self.secondary.issue_summary(timeframe, category)

    async def check_connectivity(self) -> ConnectivityReport:
        report = ConnectivityReport(primary_ok=False, secondary_ok=False)
        try:
            await self.primary.health_check()
            report.primary_ok = True
        except CivicHubError as e:
            report.primary_error = e.message
        try:
            await self.secondary.health_check()
            report.secondary_ok = True
        except CivicHubError as e:
            report.secondary_error = e.message
        logger.info(
            f"Connectivity: primary={'up' if report.primary_ok else 'down'}, "
            f"secondary={'up' if report.secondary_ok else 'down'}"
        )
        return report

    async def aclose(self) -> None:
        for client in self.clients.values():
            await client.aclose()
