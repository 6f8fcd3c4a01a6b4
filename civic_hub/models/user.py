"""
User models for authentication and profile management.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any, Dict, Optional


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    display_name: Optional[str] = Field(None, max_length=50)

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        value = value.strip()
        if "@" not in value:
            raise ValueError("A valid email address is required")
        return value


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return value.strip()


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class AuthenticatedUser(BaseModel):
    """The caller, as resolved from a bearer token."""
    id: str
    email: str = ""
    aud: Optional[str] = None
    role: Optional[str] = None


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    class Config:
        extra = "ignore"


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None

    class Config:
        extra = "ignore"


class AuthSession(BaseModel):
    """
    Canonical sign-in / sign-up result.
    session is None when the provider still waits for email confirmation.
    """
    user: Optional[AuthUser] = None
    session: Optional[SessionTokens] = None


class Profile(BaseModel):
    id: Optional[str] = None
    user_id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _str_id(cls, value):
        return str(value) if value is not None else value


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9][0-9\s\-()]{6,19}$")
    avatar_url: Optional[str] = None

    @field_validator("display_name", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    profile: Optional[Profile] = None


class UserStats(BaseModel):
    total_issues: int = 0
    pending_issues: int = 0
    in_progress_issues: int = 0
    resolved_issues: int = 0
    rejected_issues: int = 0
    total_upvotes: int = 0
    total_comments: int = 0
