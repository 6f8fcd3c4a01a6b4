"""
Auth Service - email/password authentication through Supabase Auth.

Sign-in style calls run on a throwaway anon client (create_auth_client) so
the shared service-role client never picks up an end-user session.
"""

from typing import Any, Callable, Dict, Optional, Type
import logging

import httpx
from supabase_auth.errors import AuthApiError, AuthError as ProviderAuthError, AuthRetryableError

from civic_hub.config.supabase import create_auth_client, get_db
from civic_hub.core.errors import (
    AuthError,
    CivicHubError,
    NetworkError,
    UpstreamError,
    ValidationError,
)
from civic_hub.models.user import AuthenticatedUser, LoginRequest, RegisterRequest
from civic_hub.utils.supabase_helpers import to_dict

logger = logging.getLogger(__name__)


def auth_payload(response: Any) -> Dict[str, Any]:
    """{"user", "session"} as returned by every sign-in style endpoint."""
    return {
        "user": to_dict(getattr(response, "user", None)),
        "session": to_dict(getattr(response, "session", None)),
    }


def map_auth_error(exc: Exception, default: Type[CivicHubError] = AuthError, error: Optional[str] = None) -> CivicHubError:
    """Translate Supabase Auth failures into the error taxonomy."""
    message = getattr(exc, "message", None) or str(exc)
    if isinstance(exc, (AuthRetryableError, httpx.TransportError)):
        return NetworkError(message)
    if isinstance(exc, AuthApiError) and (getattr(exc, "status", 0) or 0) >= 500:
        return UpstreamError(message, error=error)
    if isinstance(exc, ProviderAuthError):
        return default(message, error=error)
    return UpstreamError(message, error=error)


class AuthService:
    """Server-side auth operations for the REST API."""

    def __init__(self, db=None, auth_client_factory: Callable[[], Any] = create_auth_client):
        self._db = db
        self._auth_client_factory = auth_client_factory

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    def register(self, request: RegisterRequest) -> Dict[str, Any]:
        try:
            response = self._auth_client_factory().auth.sign_up({
                "email": request.email,
                "password": request.password,
                "options": {"data": {"display_name": request.display_name or ""}},
            })
        except (ProviderAuthError, httpx.HTTPError) as e:
            raise map_auth_error(e, ValidationError, error="Registration failed")
        logger.info(f"User registered: {request.email}")
        return auth_payload(response)

    def login(self, request: LoginRequest) -> Dict[str, Any]:
        try:
            response = self._auth_client_factory().auth.sign_in_with_password({
                "email": request.email,
                "password": request.password,
            })
        except (ProviderAuthError, httpx.HTTPError) as e:
            raise map_auth_error(e, AuthError, error="Authentication failed")
        return auth_payload(response)

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        try:
            response = self._auth_client_factory().auth.refresh_session(refresh_token)
        except (ProviderAuthError, httpx.HTTPError) as e:
            raise map_auth_error(e, AuthError, error="Token refresh failed")
        return auth_payload(response)

    def logout(self, token: str) -> None:
        """Revoke the session behind token."""
        try:
            self.db.auth.admin.sign_out(token)
        except (ProviderAuthError, httpx.HTTPError) as e:
            raise map_auth_error(e, ValidationError, error="Logout failed")

    def verify_token(self, token: str) -> AuthenticatedUser:
        """Resolve a bearer token to its user or raise AuthError."""
        try:
            response = self.db.auth.get_user(token)
        except (ProviderAuthError, httpx.HTTPError) as e:
            mapped = map_auth_error(e, AuthError, error="Invalid token")
            if isinstance(mapped, AuthError):
                mapped.message = "The provided token is invalid or expired"
            raise mapped

        user = getattr(response, "user", None)
        if user is None:
            raise AuthError("The provided token is invalid or expired", error="Invalid token")

        return AuthenticatedUser(
            id=str(user.id),
            email=getattr(user, "email", None) or "",
            aud=getattr(user, "aud", None),
            role=getattr(user, "role", None),
        )


# Global service instance (singleton pattern)
_auth_service = None


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
