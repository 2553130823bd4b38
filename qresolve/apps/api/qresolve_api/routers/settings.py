"""Settings endpoints: caller profile and organization name."""

import logging

from fastapi import APIRouter, Depends

from qresolve_api.auth.session_auth import (
    TenantContext,
    get_tenant_repositories,
    require_admin_role,
    require_admitted,
)
from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Organization, Profile
from qresolve_api.errors import NotFoundOrForbidden
from qresolve_api.schemas import OrganizationUpdateRequest, ProfileUpdateRequest

router = APIRouter(prefix="/v1/settings", tags=["settings"])
logger = logging.getLogger(__name__)


@router.patch("/profile", response_model=Profile)
def update_profile(
    body: ProfileUpdateRequest,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Profile:
    """Rename the caller.

    Raises:
        NotFoundOrForbidden 404: Caller has no profile row
    """
    profile = repos.profiles.update_full_name(tenant.user_id, body.full_name)
    if profile is None:
        raise NotFoundOrForbidden("Profile not found")
    logger.info("Profile updated", extra={"event": "settings.profile.updated"})
    return profile


@router.patch("/organization", response_model=Organization)
def update_organization(
    body: OrganizationUpdateRequest,
    tenant: TenantContext = Depends(require_admin_role),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Organization:
    """Rename the caller's organization (owner or admin only)."""
    organization = repos.organizations.rename(tenant.org_id, body.name)
    if organization is None:
        raise NotFoundOrForbidden("Organization not found")
    logger.info(
        "Organization renamed",
        extra={"event": "settings.organization.updated", "org_id": tenant.org_id},
    )
    return organization
