"""
In-memory stand-ins for the Supabase client and for a data path.

FakeSupabase implements the slice of the supabase-py surface the services
use: table().select/eq/in_/order/range/limit/insert/update/delete, rpc(),
and an auth namespace with sessions. StubPath is a DataPath whose answers
are scripted per operation and which records every call.
"""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

from postgrest.exceptions import APIError
from pydantic import BaseModel, Field
from supabase_auth.errors import AuthInvalidCredentialsError

from civic_hub.client.base import DataPath, Path

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Columns that must be unique per table, as in the real schema
UNIQUE = {
    "idempotency_keys": ("key",),
    "issue_upvotes": ("issue_id", "user_id"),
    "profiles": ("user_id",),
}


class Query:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.count: Optional[str] = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[tuple] = []
        self.bounds: Optional[tuple] = None
        self.max_rows: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "Query":
        self.action = "select"
        self.count = count
        return self

    def insert(self, payload: Any) -> "Query":
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload: Dict[str, Any]) -> "Query":
        self.action, self.payload = "update", payload
        return self

    def delete(self) -> "Query":
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "Query":
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: List[Any]) -> "Query":
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column: str, desc: bool = False) -> "Query":
        self.orders.append((column, desc))
        return self

    def range(self, start: int, end: int) -> "Query":
        self.bounds = (start, end)
        return self

    def limit(self, count: int) -> "Query":
        self.max_rows = count
        return self

    def execute(self):
        self.db.before_execute(self.table, self.action)
        return getattr(self, f"_{self.action}")()

    def _matching(self) -> List[Dict[str, Any]]:
        return [row for row in self.db.tables.setdefault(self.table, []) if all(f(row) for f in self.filters)]

    def _select(self):
        found = self._matching()
        for column, desc in reversed(self.orders):
            found.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        total = len(found)
        if self.bounds is not None:
            found = found[self.bounds[0]:self.bounds[1] + 1]
        if self.max_rows is not None:
            found = found[: self.max_rows]
        return SimpleNamespace(data=copy.deepcopy(found), count=total if self.count else None)

    def _insert(self):
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        created = []
        for values in payload:
            row = self.db.new_row(self.table, values)
            self.db.check_unique(self.table, row)
            self.db.tables.setdefault(self.table, []).append(row)
            created.append(copy.deepcopy(row))
        return SimpleNamespace(data=created, count=None)

    def _update(self):
        changed = []
        for row in self._matching():
            row.update(copy.deepcopy(self.payload))
            changed.append(copy.deepcopy(row))
        return SimpleNamespace(data=changed, count=None)

    def _delete(self):
        doomed = self._matching()
        self.db.tables[self.table] = [row for row in self.db.tables[self.table] if row not in doomed]
        return SimpleNamespace(data=copy.deepcopy(doomed), count=None)


class Rpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db, self.name, self.params = db, name, params

    def execute(self):
        self.db.before_execute("rpc", self.name)
        step = {"increment_upvotes": 1, "decrement_upvotes": -1}[self.name]
        for row in self.db.tables.get("civic_issues", []):
            if row["id"] == self.params["issue_id"]:
                row["upvotes"] = max(0, (row.get("upvotes") or 0) + step)
        return SimpleNamespace(data=None, count=None)


class FakeUser(BaseModel):
    id: str
    email: str
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class FakeSession(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: FakeUser


class FakeAuth:
    """Email/password accounts and a current session, like supabase-py's auth client."""

    def __init__(self, db: "FakeSupabase"):
        self.db = db
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, FakeSession] = {}
        self.current: Optional[FakeSession] = None
        self.signed_out: List[str] = []
        self.emails: List[Dict[str, Any]] = []
        self._tokens = itertools.count(1)

    def add_account(self, email: str, password: str, user_id: Optional[str] = None) -> FakeUser:
        user = FakeUser(id=user_id or f"user-{len(self.accounts) + 1}", email=email)
        self.accounts[email] = {"user": user, "password": password}
        return user

    def issue_session(self, user: FakeUser) -> FakeSession:
        n = next(self._tokens)
        session = FakeSession(access_token=f"access-{n}", refresh_token=f"refresh-{n}", user=user)
        self.sessions[session.access_token] = session
        return session

    def sign_up(self, credentials: Dict[str, Any]):
        self.db.before_execute("auth", "sign_up")
        if credentials["email"] in self.accounts:
            raise AuthInvalidCredentialsError("User already registered")
        user = self.add_account(credentials["email"], credentials["password"])
        user.user_metadata = dict(credentials.get("options", {}).get("data", {}))
        self.current = self.issue_session(user)
        return SimpleNamespace(user=user, session=self.current)

    def sign_in_with_password(self, credentials: Dict[str, Any]):
        self.db.before_execute("auth", "sign_in")
        account = self.accounts.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            raise AuthInvalidCredentialsError("Invalid login credentials")
        self.current = self.issue_session(account["user"])
        return SimpleNamespace(user=account["user"], session=self.current)

    def refresh_session(self, refresh_token: Optional[str] = None):
        self.db.before_execute("auth", "refresh")
        for session in list(self.sessions.values()):
            if session.refresh_token == refresh_token:
                self.current = self.issue_session(session.user)
                return SimpleNamespace(user=session.user, session=self.current)
        raise AuthInvalidCredentialsError("Invalid Refresh Token")

    def get_session(self) -> Optional[FakeSession]:
        return self.current

    def set_session(self, access_token: str, refresh_token: str):
        session = self.sessions.get(access_token)
        if session is None or session.refresh_token != refresh_token:
            raise AuthInvalidCredentialsError("Invalid session")
        # Adopting a session refreshes it, so the token in use changes
        return self.refresh_session(refresh_token)

    def get_user(self, token: str):
        session = self.sessions.get(token)
        if session is None:
            raise AuthInvalidCredentialsError("Invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=session.user.id, email=session.user.email, aud="authenticated", role="authenticated"))

    def sign_out(self, options: Any = None) -> None:
        if self.current is not None:
            self.signed_out.append(self.current.access_token)
        self.current = None

    def resend(self, payload: Dict[str, Any]) -> None:
        self.emails.append({"kind": "resend", **payload})

    def reset_password_for_email(self, email: str, options: Optional[Dict[str, Any]] = None) -> None:
        self.emails.append({"kind": "reset", "email": email, "options": options or {}})

    @property
    def admin(self):
        return SimpleNamespace(sign_out=lambda token: self.signed_out.append(token))


class FakeBucket:
    def __init__(self, name: str, objects: Dict[str, bytes]):
        self.name, self.objects = name, objects

    def upload(self, path: str, content: bytes, options: Optional[Dict[str, Any]] = None):
        self.objects[path] = content

    def get_public_url(self, path: str) -> str:
        return f"https://storage.test/{self.name}/{path}"


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.auth = FakeAuth(self)
        self.objects: Dict[str, bytes] = {}
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(bucket, self.objects))
        self.functions = SimpleNamespace(invoke=self._invoke)
        self.function_results: Dict[str, Any] = {}
        self.failure: Optional[Exception] = None
        self.executed: List[tuple] = []
        self._ids = itertools.count(1)

    def table(self, name: str) -> Query:
        return Query(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> Rpc:
        return Rpc(self, name, params)

    def before_execute(self, table: str, action: str) -> None:
        if self.failure is not None:
            raise self.failure
        self.executed.append((table, action))

    def new_row(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        n = next(self._ids)
        row = {"id": f"{table}-{n:04d}", "created_at": (EPOCH + timedelta(seconds=n)).isoformat()}
        row.update(copy.deepcopy(values))
        return row

    def check_unique(self, table: str, row: Dict[str, Any]) -> None:
        columns = UNIQUE.get(table)
        if not columns:
            return
        for existing in self.tables.get(table, []):
            if all(existing.get(c) == row.get(c) for c in columns):
                raise APIError({
                    "message": f"duplicate key value violates unique constraint on {table}",
                    "code": "23505",
                    "details": None,
                    "hint": None,
                })

    def _invoke(self, name: str, invoke_options: Optional[Dict[str, Any]] = None):
        self.before_execute("functions", name)
        return self.function_results[name]


class StubPath(DataPath):
    """
    Scripted data path.

    script maps an operation name to a value, an exception instance, or a
    list of those consumed one per call.
    """

    REPLAYABLE_MUTATIONS = frozenset({
        "create_issue", "update_issue", "delete_issue", "toggle_upvote", "add_comment", "update_profile",
    })

    def __init__(self, path: Path, script: Optional[Dict[str, Any]] = None):
        self.path = path
        self.script: Dict[str, Any] = dict(script or {})
        self.calls: List[tuple] = []
        self.credential = None

    async def session_credential(self):
        return self.credential

    async def _run(self, name: str, **kwargs: Any) -> Any:
        self.calls.append((name, kwargs))
        outcome = self.script.get(name)
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def register(self, request):
        return await self._run("register", request=request)

    async def login(self, request):
        return await self._run("login", request=request)

    async def refresh(self, refresh_token):
        return await self._run("refresh", refresh_token=refresh_token)

    async def logout(self):
        return await self._run("logout")

    async def current_user(self):
        return await self._run("current_user")

    async def list_issues(self, query):
        return await self._run("list_issues", query=query)

    async def get_issue(self, issue_id):
        return await self._run("get_issue", issue_id=issue_id)

    async def create_issue(self, fields, idempotency_key=None):
        return await self._run("create_issue", fields=fields, idempotency_key=idempotency_key)

    async def update_issue(self, issue_id, fields, idempotency_key=None):
        return await self._run("update_issue", issue_id=issue_id, fields=fields, idempotency_key=idempotency_key)

    async def delete_issue(self, issue_id, idempotency_key=None):
        return await self._run("delete_issue", issue_id=issue_id, idempotency_key=idempotency_key)

    async def toggle_upvote(self, issue_id, idempotency_key=None):
        return await self._run("toggle_upvote", issue_id=issue_id, idempotency_key=idempotency_key)

    async def add_comment(self, issue_id, comment, idempotency_key=None):
        return await self._run("add_comment", issue_id=issue_id, comment=comment, idempotency_key=idempotency_key)

    async def get_profile(self):
        return await self._run("get_profile")

    async def update_profile(self, update, idempotency_key=None):
        return await self._run("update_profile", update=update, idempotency_key=idempotency_key)

    async def user_issues(self, query):
        return await self._run("user_issues", query=query)

    async def user_upvoted(self, limit=20, offset=0):
        return await self._run("user_upvoted", limit=limit, offset=offset)

    async def user_stats(self):
        return await self._run("user_stats")

    async def health_check(self):
        return await self._run("health_check")
