"""
Data path interface shared by the two clients.

Contract:
- Every operation returns a canonical model from civic_hub.models, never a
  raw response, so callers never branch on which path served them.
- Every failure is a civic_hub.core.errors.CivicHubError subclass.
- Mutating operations take an idempotency_key; a path lists in
  REPLAYABLE_MUTATIONS the operations for which it honours that key.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

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

if TYPE_CHECKING:
    from civic_hub.client.session_store import Credential


class Path(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"

    @property
    def alternate(self) -> "Path":
        return Path.SECONDARY if self is Path.PRIMARY else Path.PRIMARY


class DataPath(ABC):
    """One way of reaching the data: the REST API or Supabase directly."""

    path: Path
    REPLAYABLE_MUTATIONS: frozenset = frozenset()

    def supports_replay(self, operation: str) -> bool:
        return operation in self.REPLAYABLE_MUTATIONS

    async def session_credential(self) -> Optional["Credential"]:
        """Credential this path is currently authenticated with, if it keeps its own."""
        return None

    async def aclose(self) -> None:
        return None

    # Auth
    @abstractmethod
    async def register(self, request: RegisterRequest) -> AuthSession: ...

    @abstractmethod
    async def login(self, request: LoginRequest) -> AuthSession: ...

    @abstractmethod
    async def refresh(self, refresh_token: str) -> AuthSession: ...

    @abstractmethod
    async def logout(self) -> None: ...

    @abstractmethod
    async def current_user(self) -> CurrentUser: ...

    # Issues
    @abstractmethod
    async def list_issues(self, query: IssueQuery) -> IssuePage: ...

    @abstractmethod
    async def get_issue(self, issue_id: str) -> Issue: ...

    @abstractmethod
    async def create_issue(self, fields: IssueCreate, idempotency_key: Optional[str] = None) -> Issue: ...

    @abstractmethod
    async def update_issue(self, issue_id: str, fields: IssueUpdate, idempotency_key: Optional[str] = None) -> Issue: ...

    @abstractmethod
    async def delete_issue(self, issue_id: str, idempotency_key: Optional[str] = None) -> None: ...

    @abstractmethod
    async def toggle_upvote(self, issue_id: str, idempotency_key: Optional[str] = None) -> UpvoteResult: ...

    @abstractmethod
    async def add_comment(self, issue_id: str, comment: CommentCreate, idempotency_key: Optional[str] = None) -> Comment: ...

    # Users
    @abstractmethod
    async def get_profile(self) -> CurrentUser: ...

    @abstractmethod
    async def update_profile(self, update: ProfileUpdate, idempotency_key: Optional[str] = None) -> Profile: ...

    @abstractmethod
    async def user_issues(self, query: IssueQuery) -> IssuePage: ...

    @abstractmethod
    async def user_upvoted(self, limit: int = 20, offset: int = 0) -> IssuePage: ...

    @abstractmethod
    async def user_stats(self) -> UserStats: ...

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]: ...
