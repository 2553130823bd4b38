"""Public reporting endpoints (no authentication).

Reached from the URL encoded in an asset's QR code:
- GET /v1/report/{asset_id}: asset details for the report form
- POST /v1/report/{asset_id}: submit an anonymous issue

Both run with the publishable key only. Query hints (name, location,
orgId) are echoed for display and never written.
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from qresolve_api.backend import Backend, get_backend
from qresolve_api.db.repositories import Repositories
from qresolve_api.errors import NotFoundOrForbidden
from qresolve_api.reporting.public_report import (
    ASSET_UNVERIFIED_MESSAGE,
    PublicReportService,
    ReportFlow,
    ReportSubmission,
)
from qresolve_api.reporting.urls import parse_report_hints
from qresolve_api.schemas import (
    PublicAssetResponse,
    ReportHintsResponse,
    ReportPageResponse,
    ReportSubmitRequest,
    ReportSubmitResponse,
)

router = APIRouter(prefix="/v1/report", tags=["report"])
logger = logging.getLogger(__name__)


def get_report_service(backend: Backend = Depends(get_backend)) -> PublicReportService:
    return PublicReportService(Repositories(backend.tables()))


def _page(flow: ReportFlow) -> ReportPageResponse:
    if flow.asset is None:
        raise NotFoundOrForbidden(ASSET_UNVERIFIED_MESSAGE, retry="reload")
    return ReportPageResponse(
        state=flow.state.value,
        hints=ReportHintsResponse(
            name=flow.hints.name, location=flow.hints.location, org_id=flow.hints.org_id
        ),
        asset=PublicAssetResponse(
            id=flow.asset.id,
            name=flow.asset.name,
            location=flow.asset.location,
            serial_number=flow.asset.serial_number,
        ),
        display_name=flow.display_name,
        display_location=flow.display_location,
    )


@router.get("/{asset_id}", response_model=ReportPageResponse)
def get_report_page(
    asset_id: str,
    request: Request,
    service: PublicReportService = Depends(get_report_service),
) -> ReportPageResponse:
    """Resolve a scanned asset.

    Raises:
        NotFoundOrForbidden 404: Asset could not be verified (retry="reload")
    """
    flow = service.load(asset_id, parse_report_hints(request.query_params))
    return _page(flow)


@router.post("/{asset_id}", status_code=status.HTTP_201_CREATED, response_model=ReportSubmitResponse)
def submit_report(
    asset_id: str,
    body: ReportSubmitRequest,
    request: Request,
    service: PublicReportService = Depends(get_report_service),
) -> ReportSubmitResponse:
    """Submit an anonymous issue for the asset at asset_id.

    The asset is fetched again here; org_id always comes from that row.

    Raises:
        NotFoundOrForbidden 404: Asset could not be verified
        ValidationError 422: Asset has no organization
        BackendError 502: Insert rejected (message verbatim)
    """
    flow = service.load(asset_id, parse_report_hints(request.query_params))
    issue = service.submit(
        flow,
        ReportSubmission(
            title=body.title,
            description=body.description,
            priority=body.priority,
            reporter_name=body.reporter_name,
            reporter_email=body.reporter_email,
        ),
    )
    return ReportSubmitResponse(
        state=flow.state.value,
        issue_id=issue.id,
        asset_name=flow.display_name,
        message=f"Thank you! Your report for {flow.display_name} has been submitted.",
    )
