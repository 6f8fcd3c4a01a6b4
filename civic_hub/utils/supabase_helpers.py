"""
Supabase query helpers.

execute() runs a PostgREST builder and turns library exceptions into the
civic_hub error taxonomy, so services never leak postgrest/httpx types.
"""

from typing import Any, Dict, List, Optional
import logging

import httpx
from postgrest.exceptions import APIError

from civic_hub.core.errors import (
    CivicHubError,
    ConflictError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

# PostgREST / Postgres error codes we branch on
NO_ROWS = "PGRST116"
UNIQUE_VIOLATION = "23505"
INSUFFICIENT_PRIVILEGE = "42501"


def map_api_error(exc: APIError) -> CivicHubError:
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    if code == NO_ROWS:
        return NotFoundError(message)
    if code == UNIQUE_VIOLATION:
        return ConflictError(message)
    if code == INSUFFICIENT_PRIVILEGE:
        return ForbiddenError(message)
    return UpstreamError(message)


def execute(builder) -> Any:
    """Run builder.execute() with typed failures."""
    try:
        return builder.execute()
    except APIError as e:
        raise map_api_error(e)
    except httpx.TimeoutException as e:
        raise NetworkError(f"Request to data service timed out: {e}")
    except httpx.TransportError as e:
        raise NetworkError(f"Data service unreachable: {e}")


def rows(response) -> List[Dict[str, Any]]:
    data = getattr(response, "data", None)
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


def first_row(response) -> Optional[Dict[str, Any]]:
    found = rows(response)
    return found[0] if found else None


def to_dict(obj: Any) -> Any:
    """Serialize auth library objects (pydantic models) to plain JSON data."""
    if obj is None:
        return None
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return obj
    return dict(obj.__dict__)
