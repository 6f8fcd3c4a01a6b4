"""
Issue endpoints - list, read, report, edit, delete, upvote and comment.

Mutating endpoints honour an optional Idempotency-Key header: a repeated
key returns the stored result instead of applying the change again.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status
from pydantic import ValidationError as PydanticValidationError

from civic_hub.core.errors import CivicHubError, UpstreamError, from_pydantic
from civic_hub.models.base import envelope
from civic_hub.models.issue import CommentCreate, IssueCreate, IssueQuery, IssueUpdate
from civic_hub.models.user import AuthenticatedUser
from civic_hub.services.comment_service import get_comment_service
from civic_hub.services.issue_service import get_issue_service
from civic_hub.services.vote_service import get_vote_service
from civic_hub.utils.security import get_current_user, get_optional_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["Issues"])


@router.get("")
def list_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    limit: int = Query(20),
    offset: int = Query(0),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
):
    """
    List issues with optional status/category/priority filters.

    Pagination is range based (limit/offset); total counts all matches.
    """
    try:
        query = IssueQuery(
            status=status_filter,
            category=category,
            priority=priority,
            limit=limit,
            offset=offset,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except PydanticValidationError as e:
        raise from_pydantic(e)

    try:
        page = get_issue_service().list_issues(query, viewer_id=user.id if user else None)
        return envelope(
            page["items"],
            pagination={"limit": page["limit"], "offset": page["offset"], "total": page["total"]},
        )
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get issues error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching issues", error="Internal server error")


@router.get("/{issue_id}")
def get_issue(issue_id: str, user: Optional[AuthenticatedUser] = Depends(get_optional_user)):
    try:
        return envelope(get_issue_service().get_issue(issue_id, viewer_id=user.id if user else None))
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get issue error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching the issue", error="Internal server error")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_issue(
    issue: IssueCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """
    Report a new issue. It starts as pending with zero upvotes.
    """
    try:
        logger.info(f"POST /issues - user={user.id}, category={issue.category.value}")
        created = get_issue_service().create_issue(user.id, issue, idempotency_key=idempotency_key)
        return envelope(created, message="Issue created successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Create issue error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while creating the issue", error="Internal server error")


@router.put("/{issue_id}")
def update_issue(
    issue_id: str,
    update: IssueUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """Owner-only partial update."""
    try:
        updated = get_issue_service().update_issue(issue_id, user.id, update, idempotency_key=idempotency_key)
        return envelope(updated, message="Issue updated successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Update issue error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while updating the issue", error="Internal server error")


@router.delete("/{issue_id}")
def delete_issue(
    issue_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """Owner-only delete."""
    try:
        get_issue_service().delete_issue(issue_id, user.id, idempotency_key=idempotency_key)
        return envelope(message="Issue deleted successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Delete issue error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while deleting the issue", error="Internal server error")


@router.post("/{issue_id}/upvote")
def toggle_upvote(
    issue_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """
    Toggle the caller's upvote: adds it when absent, removes it when present.
    """
    try:
        result = get_vote_service().toggle_upvote(issue_id, user.id, idempotency_key=idempotency_key)
        message = "Upvote added successfully" if result["upvoted"] else "Upvote removed successfully"
        return envelope(result, message=message)
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Toggle upvote error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while processing the upvote", error="Internal server error")


@router.post("/{issue_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    issue_id: str,
    comment: CommentCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    try:
        created = get_comment_service().add_comment(issue_id, user.id, comment, idempotency_key=idempotency_key)
        return envelope(created, message="Comment added successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Add comment error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while adding the comment", error="Internal server error")
