"""
Vote Service - toggle a user's upvote on an issue.

The upvote row is the source of truth for "has this user upvoted"; the
civic_issues.upvotes counter is moved by the increment_upvotes /
decrement_upvotes RPCs.
"""

from typing import Dict, Optional
import logging

from civic_hub.config.supabase import get_db
from civic_hub.core.errors import CivicHubError, NotFoundError
from civic_hub.services.idempotency_service import IdempotencyService
from civic_hub.utils.supabase_helpers import execute, first_row

logger = logging.getLogger(__name__)


class VoteService:
    """Service for upvotes on issues."""

    def __init__(self, db=None, idempotency: Optional[IdempotencyService] = None):
        self.db = db if db is not None else get_db()
        self.idempotency = idempotency or IdempotencyService(self.db)

    def toggle_upvote(self, issue_id: str, user_id: str, idempotency_key: Optional[str] = None) -> Dict:
        """
        Add the user's upvote if absent, remove it if present.

        Returns:
            {"issue_id", "upvoted", "upvotes"}
        """
        def apply():
            self._upvote_count(issue_id)

            existing = first_row(execute(
                self.db.table("issue_upvotes")
                .select("id")
                .eq("issue_id", issue_id)
                .eq("user_id", user_id)
                .limit(1)
            ))

            if existing:
                execute(self.db.table("issue_upvotes").delete().eq("id", existing["id"]))
                self._move_counter("decrement_upvotes", issue_id)
                upvoted = False
            else:
                execute(self.db.table("issue_upvotes").insert({"issue_id": issue_id, "user_id": user_id}))
                self._move_counter("increment_upvotes", issue_id)
                upvoted = True

            return {
                "issue_id": issue_id,
                "upvoted": upvoted,
                "upvotes": self._upvote_count(issue_id),
            }

        return self.idempotency.run(idempotency_key, "toggle_upvote", user_id, apply)

    def _upvote_count(self, issue_id: str) -> int:
        issue = first_row(execute(
            self.db.table("civic_issues").select("id, upvotes").eq("id", issue_id).limit(1)
        ))
        if issue is None:
            raise NotFoundError("The requested issue does not exist", error="Issue not found")
        return issue.get("upvotes") or 0

    def _move_counter(self, function: str, issue_id: str) -> None:
        # The upvote row already changed; a stale counter is logged, not fatal
        try:
            execute(self.db.rpc(function, {"issue_id": issue_id}))
        except CivicHubError as e:
            logger.error(f"Error calling {function} for issue {issue_id}: {e.message}")


# Global service instance
_vote_service = None


def get_vote_service() -> VoteService:
    """Get or create VoteService singleton."""
    global _vote_service
    if _vote_service is None:
        _vote_service = VoteService()
    return _vote_service
