"""
Issue Service - query and mutate civic issues.

Used by the REST API (service-role client) and by the direct client path
(user client, RLS applies). Because both paths run this same code against
the same IssueQuery, filtering, ordering and range pagination agree.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging

from civic_hub.config.supabase import get_db
from civic_hub.core.errors import ForbiddenError, NotFoundError, UpstreamError
from civic_hub.models.issue import IssueCreate, IssueQuery, IssueStatus, IssueUpdate, SortOrder
from civic_hub.services.idempotency_service import IdempotencyService
from civic_hub.utils.supabase_helpers import execute, first_row, rows

logger = logging.getLogger(__name__)

ISSUES = "civic_issues"
COMMENTS = "issue_comments"
UPVOTES = "issue_upvotes"
PROFILES = "profiles"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _unique(values: Iterable[Any]) -> List[Any]:
    return list(dict.fromkeys(v for v in values if v))


class IssueService:
    """Service for civic issue CRUD and listing."""

    def __init__(self, db=None, idempotency: Optional[IdempotencyService] = None):
        self.db = db if db is not None else get_db()
        self.idempotency = idempotency or IdempotencyService(self.db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_issues(
        self,
        query: IssueQuery,
        viewer_id: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Page of issues matching query.

        Returns {"items", "limit", "offset", "total"}; total is the number of
        matching rows, not the page length.
        """
        builder = self.db.table(ISSUES).select("*", count="exact")
        if owner_id:
            builder = builder.eq("user_id", owner_id)
        if query.status:
            builder = builder.eq("status", query.status.value)
        if query.category:
            builder = builder.eq("category", query.category.value)
        if query.priority:
            builder = builder.eq("priority", query.priority.value)

        descending = query.sort_order == SortOrder.DESC
        # id as tie-breaker keeps consecutive ranges disjoint
        builder = builder.order(query.sort_by, desc=descending).order("id", desc=descending)
        builder = builder.range(query.offset, query.offset + query.limit - 1)

        response = execute(builder)
        issues = rows(response)
        total = response.count if getattr(response, "count", None) is not None else len(issues)

        return {
            "items": self.decorate(issues, viewer_id),
            "limit": query.limit,
            "offset": query.offset,
            "total": total,
        }

    def get_issue(self, issue_id: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """Single issue with its comments, author profile and viewer's upvote flag."""
        issue = self._fetch(issue_id)

        comments = rows(execute(
            self.db.table(COMMENTS)
            .select("id, issue_id, content, created_at, user_id")
            .eq("issue_id", issue_id)
            .order("created_at", desc=False)
        ))
        profiles = self._profiles([issue.get("user_id")] + [c.get("user_id") for c in comments])
        for comment in comments:
            comment["profiles"] = profiles.get(comment.get("user_id"))

        issue["profiles"] = profiles.get(issue.get("user_id"))
        issue["issue_comments"] = comments
        issue["comments_count"] = len(comments)
        issue["user_has_upvoted"] = bool(viewer_id) and issue_id in self._upvoted_ids([issue_id], viewer_id)
        return issue

    def decorate(self, issues: List[Dict[str, Any]], viewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Attach author profiles, comment counts and the viewer's upvote flags."""
        if not issues:
            return []
        issue_ids = [issue["id"] for issue in issues]
        profiles = self._profiles(issue.get("user_id") for issue in issues)
        counts = self._comment_counts(issue_ids)
        upvoted = self._upvoted_ids(issue_ids, viewer_id) if viewer_id else set()

        decorated = []
        for issue in issues:
            item = dict(issue)
            item["profiles"] = profiles.get(issue.get("user_id"))
            item["comments_count"] = counts.get(issue["id"], 0)
            item["user_has_upvoted"] = issue["id"] in upvoted
            decorated.append(item)
        return decorated

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_issue(self, user_id: str, fields: IssueCreate, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        def apply():
            row = fields.to_row()
            row.update({
                "user_id": user_id,
                "status": IssueStatus.PENDING.value,
                "upvotes": 0,
            })
            created = first_row(execute(self.db.table(ISSUES).insert(row)))
            if created is None:
                raise UpstreamError("Issue was not returned after insert")
            created["profiles"] = self._profiles([user_id]).get(user_id)
            logger.info(f"Issue created: {created.get('id')} by {user_id}")
            return created

        return self.idempotency.run(idempotency_key, "create_issue", user_id, apply)

    def update_issue(
        self,
        issue_id: str,
        user_id: str,
        fields: IssueUpdate,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        def apply():
            self._require_owner(issue_id, user_id, "update")
            changes = fields.to_row()
            changes["updated_at"] = _now()
            updated = first_row(execute(self.db.table(ISSUES).update(changes).eq("id", issue_id)))
            if updated is None:
                updated = self._fetch(issue_id)
            updated["profiles"] = self._profiles([updated.get("user_id")]).get(updated.get("user_id"))
            return updated

        return self.idempotency.run(idempotency_key, "update_issue", user_id, apply)

    def delete_issue(self, issue_id: str, user_id: str, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        def apply():
            self._require_owner(issue_id, user_id, "delete")
            execute(self.db.table(ISSUES).delete().eq("id", issue_id))
            logger.info(f"Issue deleted: {issue_id} by {user_id}")
            return {"id": issue_id, "deleted": True}

        return self.idempotency.run(idempotency_key, "delete_issue", user_id, apply)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, issue_id: str) -> Dict[str, Any]:
        issue = first_row(execute(self.db.table(ISSUES).select("*").eq("id", issue_id).limit(1)))
        if issue is None:
            raise NotFoundError("The requested issue does not exist", error="Issue not found")
        return issue

    def _require_owner(self, issue_id: str, user_id: str, action: str) -> Dict[str, Any]:
        issue = self._fetch(issue_id)
        if issue.get("user_id") != user_id:
            raise ForbiddenError(f"You can only {action} your own issues")
        return issue

    def _profiles(self, user_ids: Iterable[Optional[str]]) -> Dict[str, Dict[str, Any]]:
        ids = _unique(user_ids)
        if not ids:
            return {}
        found = rows(execute(
            self.db.table(PROFILES)
            .select("user_id, display_name, avatar_url")
            .in_("user_id", ids)
        ))
        return {p["user_id"]: p for p in found}

    def _comment_counts(self, issue_ids: List[str]) -> Dict[str, int]:
        found = rows(execute(
            self.db.table(COMMENTS).select("issue_id").in_("issue_id", issue_ids)
        ))
        return Counter(c["issue_id"] for c in found)

    def _upvoted_ids(self, issue_ids: List[str], user_id: str) -> set:
        found = rows(execute(
            self.db.table(UPVOTES)
            .select("issue_id")
            .eq("user_id", user_id)
            .in_("issue_id", issue_ids)
        ))
        return {u["issue_id"] for u in found}


# Global service instance (singleton pattern)
_issue_service = None


def get_issue_service() -> IssueService:
    """Get or create IssueService singleton bound to the service-role client."""
    global _issue_service
    if _issue_service is None:
        _issue_service = IssueService()
    return _issue_service
