"""
User Service - profiles, a user's own issues, upvoted issues and stats.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Optional
import logging

from civic_hub.config.supabase import get_db
from civic_hub.core.errors import CivicHubError
from civic_hub.models.issue import IssueQuery, IssueStatus
from civic_hub.models.user import ProfileUpdate
from civic_hub.services.issue_service import IssueService
from civic_hub.utils.supabase_helpers import execute, first_row, rows

logger = logging.getLogger(__name__)


class UserService:
    """
    Service for user-scoped data in Supabase.
    """

    def __init__(self, db=None, issues: Optional[IssueService] = None):
        self.db = db if db is not None else get_db()
        self.issues = issues or IssueService(self.db)

    def get_profile(self, user_id: str) -> Optional[Dict]:
        """Stored profile row, or None when the user never saved one."""
        return first_row(execute(
            self.db.table("profiles").select("*").eq("user_id", user_id).limit(1)
        ))

    def get_current_user(self, user_id: str, email: Optional[str]) -> Dict:
        return {
            "id": user_id,
            "email": email,
            "profile": self.get_profile(user_id),
        }

    def get_profile_or_default(self, user_id: str, email: Optional[str]) -> Dict:
        """
        Profile view for /users/profile; a blank profile when none exists.
        """
        profile = self.get_profile(user_id)
        if profile is None:
            now = datetime.now(timezone.utc).isoformat()
            profile = {
                "user_id": user_id,
                "display_name": None,
                "avatar_url": None,
                "phone": None,
                "created_at": now,
                "updated_at": now,
            }
        return {"id": user_id, "email": email, "profile": profile}

    def update_profile(self, user_id: str, update: ProfileUpdate) -> Dict:
        """
        Update the user's profile, creating it on first save.
        """
        changes = update.model_dump(exclude_none=True)
        existing = first_row(execute(
            self.db.table("profiles").select("id").eq("user_id", user_id).limit(1)
        ))

        if existing:
            changes["updated_at"] = datetime.now(timezone.utc).isoformat()
            saved = first_row(execute(
                self.db.table("profiles").update(changes).eq("user_id", user_id)
            ))
        else:
            changes["user_id"] = user_id
            saved = first_row(execute(self.db.table("profiles").insert(changes)))

        logger.info(f"Profile saved for {user_id}")
        return saved or self.get_profile(user_id)

    def get_user_issues(self, user_id: str, query: IssueQuery) -> Dict:
        return self.issues.list_issues(query, viewer_id=user_id, owner_id=user_id)

    def get_upvoted_issues(self, user_id: str, limit: int = 20, offset: int = 0) -> Dict:
        """
        Issues the user upvoted, most recent upvote first.
        """
        response = execute(
            self.db.table("issue_upvotes")
            .select("issue_id, created_at", count="exact")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .order("issue_id", desc=True)
            .range(offset, offset + limit - 1)
        )
        upvotes = rows(response)
        total = response.count if getattr(response, "count", None) is not None else len(upvotes)

        items = []
        if upvotes:
            issue_ids = [u["issue_id"] for u in upvotes]
            found = rows(execute(
                self.db.table("civic_issues").select("*").in_("id", issue_ids)
            ))
            by_id = {issue["id"]: issue for issue in self.issues.decorate(found, viewer_id=user_id)}
            for upvote in upvotes:
                issue = by_id.get(upvote["issue_id"])
                if issue is None:
                    continue
                issue["upvoted_at"] = upvote.get("created_at")
                items.append(issue)

        return {"items": items, "limit": limit, "offset": offset, "total": total}

    def get_user_stats(self, user_id: str) -> Dict:
        """
        Issue counts by status plus upvotes and comments the user gave.
        """
        statuses = Counter(
            issue.get("status") for issue in rows(execute(
                self.db.table("civic_issues").select("status").eq("user_id", user_id)
            ))
        )

        stats = {
            "total_issues": sum(statuses.values()),
            "pending_issues": statuses.get(IssueStatus.PENDING.value, 0),
            "in_progress_issues": statuses.get(IssueStatus.IN_PROGRESS.value, 0),
            "resolved_issues": statuses.get(IssueStatus.RESOLVED.value, 0),
            "rejected_issues": statuses.get(IssueStatus.REJECTED.value, 0),
            "total_upvotes": self._count("issue_upvotes", user_id),
            "total_comments": self._count("issue_comments", user_id),
        }
        return stats

    def _count(self, table: str, user_id: str) -> int:
        try:
            response = execute(
                self.db.table(table).select("id", count="exact").eq("user_id", user_id)
            )
        except CivicHubError as e:
            logger.error(f"Error counting {table} for {user_id}: {e.message}")
            return 0
        if getattr(response, "count", None) is not None:
            return response.count
        return len(rows(response))


# Global service instance (singleton pattern)
_user_service = None


def get_user_service() -> UserService:
    """
    Get or create UserService singleton instance.
    """
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
