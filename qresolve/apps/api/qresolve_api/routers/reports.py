"""Report summary endpoint."""

from fastapi import APIRouter, Depends

from qresolve_api.analytics.stats import build_report_summary
from qresolve_api.auth.session_auth import (
    TenantContext,
    get_tenant_repositories,
    require_admitted,
)
from qresolve_api.db.repositories import Repositories
from qresolve_api.schemas import ReportSummaryResponse

router = APIRouter(prefix="/v1/reports", tags=["reports"])


@router.get("/summary", response_model=ReportSummaryResponse)
def get_summary(
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> ReportSummaryResponse:
    """Issue totals, breakdowns and average resolution time (days)."""
    summary = build_report_summary(repos, tenant.org_id)
    return ReportSummaryResponse(
        total_issues=summary.total_issues,
        resolved_issues=summary.resolved_issues,
        avg_resolution_days=summary.avg_resolution_days,
        by_status=summary.by_status,
        by_priority=summary.by_priority,
    )
