"""
Authentication endpoints - email/password sessions backed by Supabase Auth.
"""

from fastapi import APIRouter, Depends, status
from civic_hub.core.errors import CivicHubError, UpstreamError
from civic_hub.models.base import envelope
from civic_hub.models.user import AuthenticatedUser, LoginRequest, RefreshRequest, RegisterRequest
from civic_hub.services.auth_service import get_auth_service
from civic_hub.services.user_service import get_user_service
from civic_hub.utils.security import get_bearer_token, get_current_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest):
    """
    Register a new user.

    Returns the new user and, unless email confirmation is pending, a session.
    """
    try:
        data = get_auth_service().register(request)
        return envelope(data, message="User registered successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Registration error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred during registration", error="Internal server error")


@router.post("/login")
def login(request: LoginRequest):
    """
    Sign in with email and password.

    Returns:
        {success, message, data: {user, session: {access_token, refresh_token, ...}}}
    """
    try:
        data = get_auth_service().login(request)
        logger.info(f"User signed in: {request.email}")
        return envelope(data, message="Login successful")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Login error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred during login", error="Internal server error")


@router.post("/refresh")
def refresh(request: RefreshRequest):
    try:
        data = get_auth_service().refresh(request.refresh_token)
        return envelope(data, message="Token refreshed successfully")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Token refresh error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred during token refresh", error="Internal server error")


@router.post("/logout")
def logout(token: str = Depends(get_bearer_token), user: AuthenticatedUser = Depends(get_current_user)):
    try:
        get_auth_service().logout(token)
        logger.info(f"User signed out: {user.id}")
        return envelope(message="Logout successful")
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Logout error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred during logout", error="Internal server error")


@router.get("/me")
def me(user: AuthenticatedUser = Depends(get_current_user)):
    """
    Current user with their stored profile (null when none was saved).
    """
    try:
        return envelope(get_user_service().get_current_user(user.id, user.email))
    except CivicHubError:
        raise
    except Exception as e:
        logger.error(f"Get user error: {str(e)}", exc_info=True)
        raise UpstreamError("An error occurred while fetching user data", error="Internal server error")
