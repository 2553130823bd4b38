"""Session authentication for workspace endpoints.

Supabase JWT-based session auth, resolved through the SessionStore and
admitted by the route guard.

FLOW:
1. User logs in via POST /v1/auth/login -> receives JWT access_token
2. User calls a workspace endpoint with Authorization: Bearer <jwt>
3. JWT is validated by Supabase (auth.get_user); invalid -> anonymous
4. SessionStore resolves profile -> membership -> organization
5. Route guard admits the request or raises the matching problem
6. Returns TenantContext(user_id, org_id, role)

SECURITY:
- JWT signature verified by Supabase
- Table calls carry the caller's JWT, so RLS applies on top of the
  org_id filters added by the repositories
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from qresolve_api.backend import Backend, get_backend
from qresolve_api.context import org_id_var, user_id_var
from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import AuthSession, OrgRole
from qresolve_api.errors import InsufficientRole, QResolveError
from qresolve_api.session.guard import evaluate_route_guard, guard_error
from qresolve_api.session.state import IdentityState
from qresolve_api.session.store import SessionStore

logger = logging.getLogger(__name__)

# HTTPBearer scheme for session JWT
session_security = HTTPBearer(auto_error=False, description="Supabase JWT Session Token")


@dataclass(frozen=True)
class TenantContext:
    """Admitted caller: verified user with exactly one organization."""

    user_id: str
    org_id: str
    org_name: str
    role: OrgRole
    email: Optional[str]
    access_token: str


@contextmanager
def open_session_store(backend: Backend, access_token: Optional[str]) -> Iterator[SessionStore]:
    """Started SessionStore for a bearer token (anonymous when absent or invalid)."""
    auth = backend.auth()
    session = None
    if access_token:
        user = auth.get_user(access_token)
        if user is not None:
            session = AuthSession(access_token=access_token, user=user)

    store = SessionStore(auth, backend.tables)
    try:
        state = store.start(session)
        if state.user is not None:
            user_id_var.set(state.user.id)
        if state.organization is not None:
            org_id_var.set(state.organization.id)
        yield store
    finally:
        store.close()


def get_session_store(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
    backend: Backend = Depends(get_backend),
) -> Iterator[SessionStore]:
    """FastAPI dependency: settled SessionStore for the request."""
    token = credentials.credentials if credentials else None
    with open_session_store(backend, token) as store:
        yield store


def get_identity_state(store: SessionStore = Depends(get_session_store)) -> IdentityState:
    return store.state


def admit(state: IdentityState) -> TenantContext:
    """Apply the route guard to a state.

    Raises:
        QResolveError: Problem matching the guard decision
    """
    decision = evaluate_route_guard(state)
    if not decision.admitted:
        logger.info(
            "Request not admitted",
            extra={
                "event": "session.guard.rejected",
                "guard_state": decision.state.value,
                "user_id": state.user.id if state.user else None,
            },
        )
        raise guard_error(decision, state)

    if (
        state.user is None
        or state.session is None
        or state.organization is None
        or state.membership is None
    ):
        raise QResolveError("Admitted identity is incomplete.", guard_state=decision.state.value)
    return TenantContext(
        user_id=state.user.id,
        org_id=state.organization.id,
        org_name=state.organization.name,
        role=state.membership.role,
        email=state.user.email,
        access_token=state.session.access_token,
    )


def require_admitted(state: IdentityState = Depends(get_identity_state)) -> TenantContext:
    return admit(state)


def require_admin_role(tenant: TenantContext = Depends(require_admitted)) -> TenantContext:
    """Require admin or owner role within the organization.

    Raises:
        InsufficientRole: 403 if the member role is plain member
    """
    if tenant.role not in (OrgRole.OWNER, OrgRole.ADMIN):
        logger.warning(
            "Insufficient permissions: admin role required",
            extra={
                "event": "auth.insufficient_permissions",
                "user_id": tenant.user_id,
                "org_id": tenant.org_id,
                "role": tenant.role.value,
            },
        )
        raise InsufficientRole("Admin or owner role required for this operation")
    return tenant


def get_tenant_repositories(
    tenant: TenantContext = Depends(require_admitted),
    backend: Backend = Depends(get_backend),
) -> Repositories:
    """Repositories acting as the admitted caller (RLS as that user)."""
    return Repositories(backend.tables(tenant.access_token))
