"""
User endpoints - profile, own issues, upvoted issues and statistics.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from civic_hub.core.errors import CivicHubError, UpstreamError, from_pydantic
from civic_hub.models.base import envelope
from civic_hub.models.issue import IssueQuery
from civic_hub.models.user import AuthenticatedUser, ProfileUpdate
from civic_hub.services.user_service import get_user_service
from civic_hub.utils.security import get_current_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile")
def get_profile(user: AuthenticatedUser = Depends(get_current_user)):
    try:
        return envelope(get_user_service().get_profile_or_default(user.id, user.email))
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get profile error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching profile", error="Internal server error")


@router.put("/profile")
def update_profile(update: ProfileUpdate, user: AuthenticatedUser = Depends(get_current_user)):
    try:
        saved = get_user_service().update_profile(user.id, update)
        return envelope(saved, message="Profile updated successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Update profile error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while updating profile", error="Internal server error")


@router.get("/issues")
def get_user_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(20),
    offset: int = Query(0),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    user: AuthenticatedUser = Depends(get_current_user),
):
    try:
        query = IssueQuery(status=status_filter, limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order)
    except PydanticValidationError as e:
        raise from_pydantic(e)

    try:
        page = get_user_service().get_user_issues(user.id, query)
        return envelope(
            page["items"],
            pagination={"limit": page["limit"], "offset": page["offset"], "total": page["total"]},
        )
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get user issues error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching user issues", error="Internal server error")


@router.get("/upvoted")
def get_upvoted_issues(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
):
    try:
        page = get_user_service().get_upvoted_issues(user.id, limit=limit, offset=offset)
        return envelope(
            page["items"],
            pagination={"limit": page["limit"], "offset": page["offset"], "total": page["total"]},
        )
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get upvoted issues error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching upvoted issues", error="Internal server error")


@router.get("/stats")
def get_user_stats(user: AuthenticatedUser = Depends(get_current_user)):
    try:
        return envelope(get_user_service().get_user_stats(user.id))
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get user stats error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching user statistics", error="Internal server error")
