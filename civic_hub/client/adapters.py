"""
Response adapters: turn what each path returns into the canonical models.

The primary path hands back REST envelopes, the secondary path hands back
the plain dicts the services build. Both land on the same pydantic models,
so a caller cannot tell which path served it.
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from civic_hub.core.errors import UpstreamError
from civic_hub.models.base import ApiResponse
from civic_hub.models.issue import Issue, IssuePage, UpvoteResult
from civic_hub.models.user import AuthSession

M = TypeVar("M", bound=BaseModel)


def parse_envelope(body: Any) -> ApiResponse:
    if not isinstance(body, dict):
        raise UpstreamError("Unexpected response from server", error="Invalid response")
    try:
        return ApiResponse.model_validate(body)
    except PydanticValidationError as e:
        raise UpstreamError(f"Malformed response envelope: {e}", error="Invalid response")


def to_model(model: Type[M], data: Any) -> M:
    """Validate data as model; a malformed payload is an upstream failure."""
    if data is None:
        raise UpstreamError(f"Expected {model.__name__} in response, got nothing", error="Invalid response")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise UpstreamError(f"Malformed {model.__name__} in response: {e}", error="Invalid response")


def issue_page_from_envelope(response: ApiResponse, limit: int, offset: int) -> IssuePage:
    items = response.data or []
    pagination = response.pagination
    return to_model(IssuePage, {
        "items": items,
        "limit": pagination.limit if pagination else limit,
        "offset": pagination.offset if pagination else offset,
        "total": pagination.total if pagination else len(items),
    })


def issue_page(page: Dict[str, Any]) -> IssuePage:
    return to_model(IssuePage, page)


def issue(data: Any) -> Issue:
    return to_model(Issue, data)


def upvote_result(data: Any, issue_id: str) -> UpvoteResult:
    payload = dict(data or {})
    payload.setdefault("issue_id", issue_id)
    return to_model(UpvoteResult, payload)


def auth_session(data: Optional[Dict[str, Any]]) -> AuthSession:
    """Sign-in payloads: {user, session}; session may be null."""
    return to_model(AuthSession, data or {})
