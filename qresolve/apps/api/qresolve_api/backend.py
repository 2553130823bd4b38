"""Backend factory.

Routers and the session layer never build Supabase clients themselves;
they receive a Backend through the get_backend dependency. Tests swap in
an in-memory backend with app.dependency_overrides[get_backend].
"""

from typing import AsyncContextManager, Optional, Protocol

from qresolve_api.auth.gateway import AuthGateway, SupabaseAuthGateway
from qresolve_api.db.tables import SupabaseTableGateway, TableGateway
from qresolve_api.realtime.issue_feed import IssueFeed, open_issue_feed
from qresolve_api.supabase_client import (
    create_auth_client,
    create_user_client,
    get_supabase_client,
)


class Backend(Protocol):
    def auth(self) -> AuthGateway:
        """Auth gateway with its own session (one per sign-in flow)."""
        ...

    def tables(self, access_token: Optional[str] = None) -> TableGateway:
        """Table access as the token's user, or as anon when None."""
        ...

    def issue_feed(self, org_id: str, access_token: str) -> AsyncContextManager[IssueFeed]: ...


class SupabaseBackend:
    def auth(self) -> AuthGateway:
        return SupabaseAuthGateway(create_auth_client())

    def tables(self, access_token: Optional[str] = None) -> TableGateway:
        if access_token:
            return SupabaseTableGateway(create_user_client(access_token))
        return SupabaseTableGateway(get_supabase_client())

    def issue_feed(self, org_id: str, access_token: str) -> AsyncContextManager[IssueFeed]:
        return open_issue_feed(org_id, access_token)


_backend = SupabaseBackend()


def get_backend() -> Backend:
    """FastAPI dependency returning the process-wide backend."""
    return _backend
