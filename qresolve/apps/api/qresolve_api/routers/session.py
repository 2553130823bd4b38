"""Session snapshot endpoint.

GET /v1/session never fails on authentication: anonymous callers get the
ANONYMOUS decision, so a client can decide where to navigate before it
calls anything protected.
"""

from fastapi import APIRouter, Depends

from qresolve_api.auth.session_auth import get_identity_state
from qresolve_api.schemas import GuardDecisionResponse, SessionResponse
from qresolve_api.session.guard import GuardDecision, evaluate_route_guard
from qresolve_api.session.state import IdentityState

router = APIRouter(prefix="/v1/session", tags=["session"])


def guard_response(decision: GuardDecision) -> GuardDecisionResponse:
    return GuardDecisionResponse(state=decision.state.value, redirect_to=decision.redirect_to)


def session_response(state: IdentityState) -> SessionResponse:
    user = state.user
    return SessionResponse(
        authenticated=user is not None,
        user_id=user.id if user else None,
        email=user.email if user else None,
        email_confirmed=bool(user and user.is_verified),
        profile=state.profile,
        organization=state.organization,
        membership=state.membership,
        error=state.error,
        guard=guard_response(evaluate_route_guard(state)),
    )


@router.get("", response_model=SessionResponse)
def get_session(state: IdentityState = Depends(get_identity_state)) -> SessionResponse:
    return session_response(state)
