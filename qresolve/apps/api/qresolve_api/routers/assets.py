"""Asset endpoints (admitted members of the asset's organization)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from qresolve_api.auth.session_auth import (
    TenantContext,
    get_tenant_repositories,
    require_admitted,
)
from qresolve_api.config.env import get_app_base_url
from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Asset, AssetStatus
from qresolve_api.errors import NotFoundOrForbidden
from qresolve_api.reporting.urls import generate_report_url
from qresolve_api.schemas import (
    AssetCreateRequest,
    AssetListResponse,
    IssueListResponse,
    ReportUrlResponse,
)

router = APIRouter(prefix="/v1/assets", tags=["assets"])
logger = logging.getLogger(__name__)


def _get_asset_or_404(repos: Repositories, asset_id: str, org_id: str) -> Asset:
    asset = repos.assets.get(asset_id, org_id)
    if asset is None:
        raise NotFoundOrForbidden("Asset not found")
    return asset


@router.get("", response_model=AssetListResponse)
def list_assets(
    status_filter: Optional[AssetStatus] = Query(None, alias="status"),
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> AssetListResponse:
    return AssetListResponse(assets=repos.assets.list_for_org(tenant.org_id, status_filter))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Asset)
def create_asset(
    body: AssetCreateRequest,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Asset:
    asset = repos.assets.create(
        tenant.org_id, tenant.user_id, body.model_dump(mode="json", exclude_none=True)
    )
    logger.info(
        "Asset created",
        extra={"event": "asset.created", "asset_id": asset.id, "org_id": tenant.org_id},
    )
    return asset


@router.get("/{asset_id}", response_model=Asset)
def get_asset(
    asset_id: str,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Asset:
    return _get_asset_or_404(repos, asset_id, tenant.org_id)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_asset(
    asset_id: str,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Response:
    if not repos.assets.delete(asset_id, tenant.org_id):
        raise NotFoundOrForbidden("Asset not found")
    logger.info(
        "Asset deleted",
        extra={"event": "asset.deleted", "asset_id": asset_id, "org_id": tenant.org_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{asset_id}/issues", response_model=IssueListResponse)
def list_asset_issues(
    asset_id: str,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> IssueListResponse:
    _get_asset_or_404(repos, asset_id, tenant.org_id)
    return IssueListResponse(issues=repos.issues.list_for_org(tenant.org_id, asset_id=asset_id))


@router.get("/{asset_id}/report-url", response_model=ReportUrlResponse)
def get_report_url(
    asset_id: str,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> ReportUrlResponse:
    """Public report URL to encode in the asset's QR code."""
    asset = _get_asset_or_404(repos, asset_id, tenant.org_id)
    return ReportUrlResponse(
        asset_id=asset.id, report_url=generate_report_url(get_app_base_url(), asset)
    )
