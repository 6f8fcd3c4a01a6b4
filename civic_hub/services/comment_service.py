"""
Comment Service - Handle comments on issues.
"""

from typing import Dict, Optional
import logging

from civic_hub.config.supabase import get_db
from civic_hub.core.errors import NotFoundError, UpstreamError
from civic_hub.models.issue import CommentCreate
from civic_hub.services.idempotency_service import IdempotencyService
from civic_hub.utils.supabase_helpers import execute, first_row

logger = logging.getLogger(__name__)


class CommentService:
    """Service for managing comments on issues."""

    def __init__(self, db=None, idempotency: Optional[IdempotencyService] = None):
        self.db = db if db is not None else get_db()
        self.idempotency = idempotency or IdempotencyService(self.db)

    def add_comment(
        self,
        issue_id: str,
        user_id: str,
        comment: CommentCreate,
        idempotency_key: Optional[str] = None,
    ) -> Dict:
        """
        Add a comment to an issue.

        Returns:
            The stored comment row with the author's profile attached.
        """
        def apply():
            issue = first_row(execute(
                self.db.table("civic_issues").select("id").eq("id", issue_id).limit(1)
            ))
            if issue is None:
                raise NotFoundError("The requested issue does not exist", error="Issue not found")

            created = first_row(execute(self.db.table("issue_comments").insert({
                "issue_id": issue_id,
                "user_id": user_id,
                "content": comment.content,
            })))
            if created is None:
                raise UpstreamError("Comment was not returned after insert")
            profile = first_row(execute(
                self.db.table("profiles")
                .select("user_id, display_name, avatar_url")
                .eq("user_id", user_id)
                .limit(1)
            ))
            created["profiles"] = profile
            return created

        return self.idempotency.run(idempotency_key, "add_comment", user_id, apply)


# Global service instance
_comment_service = None


def get_comment_service() -> CommentService:
    """Get or create CommentService singleton."""
    global _comment_service
    if _comment_service is None:
        _comment_service = CommentService()
    return _comment_service
