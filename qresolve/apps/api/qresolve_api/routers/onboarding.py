"""Onboarding endpoint: first organization for a verified user."""

import logging

from fastapi import APIRouter, Depends, status

from qresolve_api.auth.session_auth import get_session_store
from qresolve_api.onboarding.bootstrap import OrganizationBootstrap
from qresolve_api.routers.session import guard_response
from qresolve_api.schemas import OrganizationCreateRequest, OrganizationCreateResponse
from qresolve_api.session.guard import evaluate_route_guard
from qresolve_api.session.store import SessionStore

router = APIRouter(prefix="/v1/onboarding", tags=["onboarding"])
logger = logging.getLogger(__name__)


@router.post(
    "/organization",
    status_code=status.HTTP_201_CREATED,
    response_model=OrganizationCreateResponse,
)
def create_organization(
    request: OrganizationCreateRequest,
    store: SessionStore = Depends(get_session_store),
) -> OrganizationCreateResponse:
    """Create the caller's organization, owner membership and trial subscription.

    Raises:
        AuthenticationRequired 401: No valid session
        AuthError 401: Email not verified
        ResolutionFailed 403: Existing membership could not be resolved
        BootstrapConflict 409: Caller already has an organization
        ValidationError 422: Blank name
        BackendError 502: Insert rejected (rolled back)
        PartialBootstrapFailure 500: Insert rejected and rollback failed
    """
    organization = OrganizationBootstrap(store).create_organization(request.name)
    return OrganizationCreateResponse(
        organization=organization,
        guard=guard_response(evaluate_route_guard(store.state)),
    )
