"""
Secondary data path: Supabase directly, as the signed-in user.

The supabase client is synchronous, so every call runs in a worker thread
with a timeout. Data operations reuse the same services the REST API runs,
bound to this path's own anon client, so filters, ordering, pagination and
idempotency markers behave identically on both paths; row-level security
scopes what the user can touch.

A credential issued by the primary path is adopted with auth.set_session
before the first authenticated call. Whatever session the provider hands
back is the one this path uses from then on.
"""

from typing import Any, Callable, Dict, Optional, Tuple
import asyncio
import json
import logging
import os
import time

import httpx
from postgrest.exceptions import APIError
from supabase_auth.errors import AuthError as ProviderAuthError

from civic_hub.client import adapters
from civic_hub.client.base import DataPath, Path
from civic_hub.client.session_store import Credential, SessionStore, credential_from_session
from civic_hub.config.supabase import create_user_client
from civic_hub.core.errors import AuthError, CivicHubError, NetworkError, UpstreamError, ValidationError
from civic_hub.core.settings import settings
from civic_hub.models.issue import (
    Comment,
    CommentCreate,
    Issue,
    IssueCreate,
    IssuePage,
    IssueQuery,
    IssueUpdate,
    UpvoteResult,
)
from civic_hub.models.user import (
    AuthSession,
    CurrentUser,
    LoginRequest,
    Profile,
    ProfileUpdate,
    RegisterRequest,
    UserStats,
)
from civic_hub.services.auth_service import auth_payload, map_auth_error
from civic_hub.services.comment_service import CommentService
from civic_hub.services.idempotency_service import IdempotencyService
from civic_hub.services.issue_service import IssueService
from civic_hub.services.user_service import UserService
from civic_hub.services.vote_service import VoteService
from civic_hub.utils.supabase_helpers import execute, map_api_error

logger = logging.getLogger(__name__)

ISSUE_SUMMARY_FUNCTION = "generate-issue-summary"


class SecondaryClient(DataPath):
    path = Path.SECONDARY
    REPLAYABLE_MUTATIONS = frozenset({
        "create_issue",
        "update_issue",
        "delete_issue",
        "toggle_upvote",
        "add_comment",
        "update_profile",
    })

    def __init__(
        self,
        session_store: SessionStore,
        client_factory: Callable[[], Any] = create_user_client,
        timeout: Optional[float] = None,
    ):
        self.session_store = session_store
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._client_factory = client_factory
        self._client = None
        self._services = None

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = self._client_factory()
            except Exception as e:
                logger.error(f"Could not create the direct data client: {e}", exc_info=True)
                raise UpstreamError(f"Direct data path unavailable: {e}", error="Not configured")
        return self._client

    @property
    def services(self) -> Dict[str, Any]:
        if self._services is None:
            idempotency = IdempotencyService(self.client)
            issues = IssueService(self.client, idempotency)
            self._services = {
                "issues": issues,
                "votes": VoteService(self.client, idempotency),
                "comments": CommentService(self.client, idempotency),
                "users": UserService(self.client, issues),
            }
        return self._services

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking supabase call off the event loop with typed failures."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise NetworkError(f"Supabase call timed out after {self.timeout}s")
        except ProviderAuthError as e:
            raise map_auth_error(e)
        except APIError as e:
            raise map_api_error(e)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Supabase request timed out: {e}")
        except httpx.TransportError as e:
            raise NetworkError(f"Supabase unreachable: {e}")
        except CivicHubError:
            raise
        except Exception as e:
            logger.error(f"Direct data call failed: {str(e)}", exc_info=True)
            raise UpstreamError(f"Direct data call failed: {e}", error="Upstream error")

    def _bind_session(self, required: bool) -> Optional[Tuple[str, Optional[str]]]:
        """
        Make the supabase client's session match the stored credential.

        Returns (user_id, email), or None for an anonymous caller.
        """
        stored = self.session_store.get_credential()
        if stored is None:
            if required:
                raise AuthError("Please sign in first", error="Access token required")
            return None

        auth = self.client.auth
        session = auth.get_session()
        if session is None or session.access_token != stored.access_token:
            if not stored.refresh_token:
                raise AuthError("Session cannot be resumed, please sign in again", error="Session expired")
            logger.info(f"Adopting {stored.provenance.value} session on the direct data path")
            session = auth.set_session(stored.access_token, stored.refresh_token).session
            if session is not None and session.access_token != stored.access_token:
                self.session_store.set_credential(Credential(
                    access_token=session.access_token,
                    refresh_token=session.refresh_token,
                    provenance=Path.SECONDARY,
                    user_id=str(session.user.id) if session.user else stored.user_id,
                ))

        if session is None or session.user is None:
            raise AuthError("Session expired, please sign in again", error="Session expired")
        return str(session.user.id), session.user.email

    async def _as_user(self, fn: Callable[[str, Optional[str]], Any]) -> Any:
        def run():
            user_id, email = self._bind_session(required=True)
            return fn(user_id, email)
        return await self._call(run)

    async def _as_viewer(self, fn: Callable[[Optional[str]], Any]) -> Any:
        def run():
            viewer = self._bind_session(required=False)
            return fn(viewer[0] if viewer else None)
        return await self._call(run)

    def _remember(self, response: Any) -> AuthSession:
        auth = adapters.auth_session(auth_payload(response))
        credential = credential_from_session(auth, Path.SECONDARY)
        if credential is not None:
            self.session_store.set_credential(credential)
        return auth

    async def session_credential(self) -> Optional[Credential]:
        if self._client is None:
            return None
        session = await self._call(self._client.auth.get_session)
        if session is None:
            return None
        return Credential(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            provenance=Path.SECONDARY,
            user_id=str(session.user.id) if session.user else None,
        )

    # Auth

    async def register(self, request: RegisterRequest) -> AuthSession:
        options: Dict[str, Any] = {"data": {"display_name": request.display_name or ""}}
        if settings.CONFIRMATION_REDIRECT:
            options["email_redirect_to"] = settings.CONFIRMATION_REDIRECT
        try:
            response = await self._call(self.client.auth.sign_up, {
                "email": request.email,
                "password": request.password,
                "options": options,
            })
        except AuthError as e:
            raise ValidationError(e.message, error="Registration failed")
        logger.info(f"User registered on direct path: {request.email}")
        return self._remember(response)

    async def login(self, request: LoginRequest) -> AuthSession:
        response = await self._call(self.client.auth.sign_in_with_password, {
            "email": request.email,
            "password": request.password,
        })
        return self._remember(response)

    async def refresh(self, refresh_token: str) -> AuthSession:
        response = await self._call(self.client.auth.refresh_session, refresh_token)
        return self._remember(response)

    async def logout(self) -> None:
        if self._client is None:
            return
        await self._call(self._client.auth.sign_out)

    async def current_user(self) -> CurrentUser:
        data = await self._as_user(lambda uid, email: self.services["users"].get_current_user(uid, email))
        return adapters.to_model(CurrentUser, data)

    async def resend_confirmation(self, email: str) -> None:
        payload: Dict[str, Any] = {"type": "signup", "email": email}
        if settings.CONFIRMATION_REDIRECT:
            payload["options"] = {"email_redirect_to": settings.CONFIRMATION_REDIRECT}
        await self._call(self.client.auth.resend, payload)

    async def reset_password(self, email: str) -> None:
        options = {"redirect_to": settings.PASSWORD_RESET_REDIRECT} if settings.PASSWORD_RESET_REDIRECT else {}
        await self._call(self.client.auth.reset_password_for_email, email, options)

    # Issues

    async def list_issues(self, query: IssueQuery) -> IssuePage:
        page = await self._as_viewer(lambda viewer: self.services["issues"].list_issues(query, viewer_id=viewer))
        return adapters.issue_page(page)

    async def get_issue(self, issue_id: str) -> Issue:
        data = await self._as_viewer(lambda viewer: self.services["issues"].get_issue(issue_id, viewer_id=viewer))
        return adapters.issue(data)

    async def create_issue(self, fields: IssueCreate, idempotency_key: Optional[str] = None) -> Issue:
        data = await self._as_user(
            lambda uid, _: self.services["issues"].create_issue(uid, fields, idempotency_key)
        )
        return adapters.issue(data)

    async def update_issue(self, issue_id: str, fields: IssueUpdate, idempotency_key: Optional[str] = None) -> Issue:
        data = await self._as_user(
            lambda uid, _: self.services["issues"].update_issue(issue_id, uid, fields, idempotency_key)
        )
        return adapters.issue(data)

    async def delete_issue(self, issue_id: str, idempotency_key: Optional[str] = None) -> None:
        await self._as_user(lambda uid, _: self.services["issues"].delete_issue(issue_id, uid, idempotency_key))

    async def toggle_upvote(self, issue_id: str, idempotency_key: Optional[str] = None) -> UpvoteResult:
        data = await self._as_user(
            lambda uid, _: self.services["votes"].toggle_upvote(issue_id, uid, idempotency_key)
        )
        return adapters.upvote_result(data, issue_id)

    async def add_comment(self, issue_id: str, comment: CommentCreate, idempotency_key: Optional[str] = None) -> Comment:
        data = await self._as_user(
            lambda uid, _: self.services["comments"].add_comment(issue_id, uid, comment, idempotency_key)
        )
        return adapters.to_model(Comment, data)

    async def upload_issue_image(self, filename: str, content: bytes, content_type: str = "image/jpeg") -> str:
        """Store an issue photo under the user's folder and return its public URL."""
        ext = os.path.splitext(filename)[1].lstrip(".").lower() or "jpg"

        def upload(user_id: str, _email: Optional[str]) -> str:
            object_path = f"{user_id}/{int(time.time() * 1000)}.{ext}"
            bucket = self.client.storage.from_(settings.ISSUE_IMAGES_BUCKET)
            try:
                bucket.upload(object_path, content, {"content-type": content_type})
            except httpx.TransportError:
                raise
            except Exception as e:
                logger.error(f"Image upload failed for {object_path}: {e}")
                raise UpstreamError(f"Image upload failed: {e}", error="Upload failed")
            return bucket.get_public_url(object_path)

        return await self._as_user(upload)

    async def issue_summary(self, timeframe: str = "week", category: Optional[str] = None) -> Dict[str, Any]:
        """AI digest of recent issues from the generate-issue-summary edge function."""
        body: Dict[str, Any] = {"timeframe": timeframe}
        if category and category != "all":
            body["category"] = category

        def invoke() -> Any:
            try:
                return self.client.functions.invoke(ISSUE_SUMMARY_FUNCTION, invoke_options={"body": body})
            except httpx.TransportError:
                raise
            except Exception as e:
                logger.error(f"{ISSUE_SUMMARY_FUNCTION} failed: {e}")
                raise UpstreamError(f"Summary generation failed: {e}", error="Function error")

        result = await self._call(invoke)
        if isinstance(result, (bytes, str)):
            try:
                result = json.loads(result)
            except ValueError:
                raise UpstreamError("Summary function returned a non-JSON body", error="Function error")
        return result

    # Users

    async def get_profile(self) -> CurrentUser:
        data = await self._as_user(lambda uid, email: self.services["users"].get_profile_or_default(uid, email))
        return adapters.to_model(CurrentUser, data)

    async def update_profile(self, update: ProfileUpdate, idempotency_key: Optional[str] = None) -> Profile:
        # Upsert of the same fields, so a replay is safe without the ledger.
        data = await self._as_user(lambda uid, _: self.services["users"].update_profile(uid, update))
        return adapters.to_model(Profile, data)

    async def user_issues(self, query: IssueQuery) -> IssuePage:
        page = await self._as_user(lambda uid, _: self.services["users"].get_user_issues(uid, query))
        return adapters.issue_page(page)

    async def user_upvoted(self, limit: int = 20, offset: int = 0) -> IssuePage:
        page = await self._as_user(
            lambda uid, _: self.services["users"].get_upvoted_issues(uid, limit=limit, offset=offset)
        )
        return adapters.issue_page(page)

    async def user_stats(self) -> UserStats:
        data = await self._as_user(lambda uid, _: self.services["users"].get_user_stats(uid))
        return adapters.to_model(UserStats, data)

    async def health_check(self) -> Dict[str, Any]:
        await self._call(lambda: execute(self.client.table("civic_issues").select("id").limit(1)))
        return {"status": "OK", "service": "supabase"}
