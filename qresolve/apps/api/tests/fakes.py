"""In-memory backend for tests.

FakeTables implements the TableGateway contract over dicts, FakeAuthServer
plays Supabase Auth (one user store, many per-flow gateways) and
FakeBackend wires both into the Backend protocol so tests can use
app.dependency_overrides[get_backend].

Failure injection:
    tables.fail("organization_memberships", "insert", "duplicate key")
"""

import asyncio
import re
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable, Optional, Sequence

from postgrest.types import ReturnMethod
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from qresolve_api.db.tables import Filter, Row
from qresolve_api.entities import AuthSession, AuthUser
from qresolve_api.errors import AuthError, BackendError

_BASE_TIME = datetime(2026, 10, 1, 9, 0, 0, tzinfo=timezone.utc)

TABLE_DEFAULTS: dict[str, Row] = {
    "organization_memberships": {"role": "member"},
    "subscriptions": {"current_asset_count": 0},
    "assets": {"status": "active"},
    "issues": {"status": "open", "priority": "medium"},
}


_TIMESTAMP = TypeAdapter(datetime)


def _as_datetime(value: Any) -> Any:
    if isinstance(value, str):
        try:
            parsed = _TIMESTAMP.validate_python(value)
        except PydanticValidationError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


def _like(pattern: str) -> re.Pattern[str]:
    parts = [re.escape(part) for part in pattern.split("%")]
    return re.compile(".*".join(parts), re.IGNORECASE | re.DOTALL)


def _matches(row: Row, f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == "eq":
        return value == f.value
    if f.op == "neq":
        return value != f.value
    if f.op == "in":
        return value in f.value
    if f.op == "gte":
        if value is None:
            return False
        return _as_datetime(value) >= _as_datetime(f.value)
    if f.op == "ilike":
        return value is not None and _like(f.value).fullmatch(str(value)) is not None
    raise ValueError(f"Unsupported filter operator: {f.op}")


class FakeTables:
    """TableGateway over in-memory rows."""

    def __init__(self) -> None:
        self.rows: dict[str, list[Row]] = {}
        self.calls: list[tuple[str, str]] = []
        self.insert_returning: list[tuple[str, ReturnMethod]] = []
        self._failures: dict[tuple[str, str], str] = {}
        self._tick = 0

    # Test helpers

    def fail(self, table: str, action: str, message: str = "permission denied") -> None:
        self._failures[(table, action)] = message

    def heal(self, table: str, action: str) -> None:
        self._failures.pop((table, action), None)

    def all(self, table: str) -> list[Row]:
        return [dict(row) for row in self.rows.get(table, [])]

    def seed(self, table: str, row: Row) -> Row:
        """Insert bypassing failure injection."""
        return self._insert(table, row)

    def now(self) -> datetime:
        self._tick += 1
        return _BASE_TIME + timedelta(seconds=self._tick)

    # TableGateway

    def _check(self, table: str, action: str) -> None:
        self.calls.append((table, action))
        message = self._failures.get((table, action))
        if message is not None:
            raise BackendError(message, code="42501")

    def _filtered(self, table: str, filters: Sequence[Filter]) -> list[Row]:
        return [row for row in self.rows.get(table, []) if all(_matches(row, f) for f in filters)]

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        self._check(table, "select")
        rows = self._filtered(table, filters)
        if order_by:
            rows = sorted(rows, key=lambda r: str(r.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns.strip() != "*":
            names = [name.strip() for name in columns.split(",")]
            return [{name: row.get(name) for name in names} for row in rows]
        return [dict(row) for row in rows]

    def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        self._check(table, "count")
        return len(self._filtered(table, filters))

    def insert(
        self, table: str, row: Row, *, returning: ReturnMethod = ReturnMethod.representation
    ) -> Row:
        self._check(table, "insert")
        stored = self._insert(table, row)
        self.insert_returning.append((table, returning))
        return dict(row) if returning is ReturnMethod.minimal else stored

    def _insert(self, table: str, row: Row) -> Row:
        stamp = self.now().isoformat()
        stored = dict(TABLE_DEFAULTS.get(table, {}))
        stored.update({"id": str(uuid.uuid4()), "created_at": stamp, "updated_at": stamp})
        stored.update(row)
        self.rows.setdefault(table, []).append(stored)
        return dict(stored)

    def update(self, table: str, values: Row, *, filters: Sequence[Filter]) -> list[Row]:
        self._check(table, "update")
        updated = []
        for row in self._filtered(table, filters):
            row.update(values)
            row["updated_at"] = self.now().isoformat()
            updated.append(dict(row))
        return updated

    def delete(self, table: str, *, filters: Sequence[Filter]) -> list[Row]:
        self._check(table, "delete")
        doomed = self._filtered(table, filters)
        self.rows[table] = [row for row in self.rows.get(table, []) if row not in doomed]
        return [dict(row) for row in doomed]


class FakeSubscription:
    def __init__(self, callbacks: list, callback: Callable) -> None:
        self._callbacks = callbacks
        self._callback = callback

    def unsubscribe(self) -> None:
        if self._callback in self._callbacks:
            self._callbacks.remove(self._callback)


class FakeAuthServer:
    """Shared user and token store behind every FakeAuthGateway."""

    def __init__(self, auto_confirm: bool = False) -> None:
        self.auto_confirm = auto_confirm
        self.users: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, str] = {}
        self.revoked: set[str] = set()
        self.signup_redirects: list[str] = []

    def add_user(
        self,
        email: str,
        password: str = "secret123",
        confirmed: bool = True,
        full_name: str = "Test User",
    ) -> AuthUser:
        user_id = str(uuid.uuid4())
        self.users[email] = {
            "id": user_id,
            "email": email,
            "password": password,
            "confirmed_at": datetime.now(timezone.utc) if confirmed else None,
            "full_name": full_name,
        }
        return self.user(email)

    def user(self, email: str) -> AuthUser:
        record = self.users[email]
        return AuthUser(
            id=record["id"],
            email=record["email"],
            email_confirmed_at=record["confirmed_at"],
            user_metadata={"full_name": record["full_name"]},
        )

    def confirm(self, email: str) -> None:
        self.users[email]["confirmed_at"] = datetime.now(timezone.utc)

    def issue_token(self, email: str) -> str:
        token = f"jwt-{uuid.uuid4().hex}"
        self.tokens[token] = email
        return token

    def session_for(self, email: str) -> AuthSession:
        return AuthSession(
            access_token=self.issue_token(email),
            refresh_token=f"refresh-{uuid.uuid4().hex}",
            expires_at=4102444800,
            user=self.user(email),
        )


class FakeAuthGateway:
    """Per-flow auth client: holds at most one session, notifies synchronously."""

    def __init__(self, server: FakeAuthServer) -> None:
        self.server = server
        self.session: Optional[AuthSession] = None
        self.callbacks: list[Callable[[str, Optional[AuthSession]], None]] = []

    def _emit(self, event: str) -> None:
        for callback in list(self.callbacks):
            callback(event, self.session)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        email = self.server.tokens.get(access_token)
        if email is None or access_token in self.server.revoked:
            return None
        return self.server.user(email)

    def get_session(self) -> Optional[AuthSession]:
        return self.session

    def sign_up(self, email: str, password: str, full_name: str, redirect_to: str) -> AuthUser:
        if email in self.server.users:
            raise AuthError("User already registered")
        self.server.signup_redirects.append(redirect_to)
        user = self.server.add_user(
            email, password, confirmed=self.server.auto_confirm, full_name=full_name
        )
        if self.server.auto_confirm:
            self.session = self.server.session_for(email)
            self._emit("SIGNED_IN")
        return user

    def sign_in(self, email: str, password: str) -> AuthSession:
        record = self.server.users.get(email)
        if record is None or record["password"] != password:
            raise AuthError("Invalid login credentials")
        self.session = self.server.session_for(email)
        self._emit("SIGNED_IN")
        return self.session

    def sign_out(self, access_token: Optional[str] = None) -> None:
        token = access_token or (self.session.access_token if self.session else None)
        if token:
            self.server.revoked.add(token)
        self.session = None
        self._emit("SIGNED_OUT")

    def on_auth_state_change(self, callback: Callable) -> FakeSubscription:
        self.callbacks.append(callback)
        return FakeSubscription(self.callbacks, callback)


class FakeIssueFeed:
    """Issue feed replaying queued changes, then ending, failing or staying open."""

    def __init__(
        self, changes: Sequence[Row] = (), hold_open: bool = False, fail_with: Optional[str] = None
    ) -> None:
        self.changes = list(changes)
        self.hold_open = hold_open
        self.fail_with = fail_with
        self.opened: list[tuple[str, str]] = []
        self.released = 0

    async def _iterate(self) -> AsyncIterator[Row]:
        for change in self.changes:
            yield change
        if self.fail_with is not None:
            raise RuntimeError(self.fail_with)
        if self.hold_open:
            await asyncio.Event().wait()

    @asynccontextmanager
    async def open(self, org_id: str, access_token: str) -> AsyncIterator[AsyncIterator[Row]]:
        self.opened.append((org_id, access_token))
        try:
            yield self._iterate()
        finally:
            self.released += 1


class FakeBackend:
    def __init__(self, auto_confirm: bool = False) -> None:
        self.db = FakeTables()
        self.auth_server = FakeAuthServer(auto_confirm=auto_confirm)
        self.feed = FakeIssueFeed()
        self.table_tokens: list[Optional[str]] = []

    def auth(self) -> FakeAuthGateway:
        return FakeAuthGateway(self.auth_server)

    def tables(self, access_token: Optional[str] = None) -> FakeTables:
        self.table_tokens.append(access_token)
        return self.db

    def issue_feed(self, org_id: str, access_token: str):
        return self.feed.open(org_id, access_token)

    # Seeding

    def add_member(
        self,
        email: str,
        org_name: Optional[str] = "Acme Facilities",
        role: str = "owner",
        confirmed: bool = True,
    ) -> dict[str, Any]:
        """User (+ profile, and organization with membership unless org_name is None).

        Returns:
            dict with user_id, org_id, token and Authorization headers
        """
        user = self.auth_server.add_user(email, confirmed=confirmed)
        self.db.seed("profiles", {"user_id": user.id, "full_name": "Test User", "email": email})
        org_id = None
        if org_name is not None:
            org = self.db.seed("organizations", {"name": org_name, "owner_id": user.id})
            self.db.seed(
                "organization_memberships",
                {"org_id": org["id"], "user_id": user.id, "role": role},
            )
            org_id = org["id"]
        token = self.auth_server.issue_token(email)
        return {
            "user_id": user.id,
            "org_id": org_id,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    def join(self, email: str, org_id: str, role: str = "member") -> dict[str, Any]:
        """Second user in an existing organization."""
        member = self.add_member(email, org_name=None)
        self.db.seed(
            "organization_memberships", {"org_id": org_id, "user_id": member["user_id"], "role": role}
        )
        member["org_id"] = org_id
        return member

    def add_asset(self, org_id: str, name: str = "Boiler #2", **values: Any) -> Row:
        row = {"org_id": org_id, "name": name, "location": "Basement"}
        row.update(values)
        return self.db.seed("assets", row)

    def add_issue(self, org_id: str, title: str = "Leak", **values: Any) -> Row:
        row = {"org_id": org_id, "title": title}
        row.update(values)
        return self.db.seed("issues", row)
