"""
Bearer-token dependencies for the REST API.

get_current_user rejects requests without a valid token; get_optional_user
lets anonymous callers through and only personalizes when a valid token is
present.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from civic_hub.core.errors import AuthError, CivicHubError
from civic_hub.models.user import AuthenticatedUser
from civic_hub.services.auth_service import get_auth_service

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthError("Please provide a valid access token", error="Access token required")
    return credentials.credentials


def get_current_user(token: str = Depends(get_bearer_token)) -> AuthenticatedUser:
    return get_auth_service().verify_token(token)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthenticatedUser]:
    if credentials is None or not credentials.credentials:
        return None
    try:
        return get_auth_service().verify_token(credentials.credentials)
    except CivicHubError as e:
        # Anonymous access is allowed, a bad token just isn't personalized
        logger.debug(f"Ignoring invalid optional token: {e.message}")
        return None
