"""Issue endpoints (admitted members of the issue's organization)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from qresolve_api.auth.session_auth import (
    TenantContext,
    get_tenant_repositories,
    require_admitted,
)
from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Issue, IssuePriority, IssueStatus
from qresolve_api.errors import NotFoundOrForbidden, ValidationError
from qresolve_api.schemas import IssueCreateRequest, IssueListResponse, IssueStatusUpdateRequest

router = APIRouter(prefix="/v1/issues", tags=["issues"])
logger = logging.getLogger(__name__)


@router.get("", response_model=IssueListResponse)
def list_issues(
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    priority: Optional[IssuePriority] = Query(None),
    search: Optional[str] = Query(None, max_length=255, description="Case-insensitive title match"),
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> IssueListResponse:
    issues = repos.issues.list_for_org(
        tenant.org_id,
        status=status_filter,
        priority=priority,
        search=search.strip() if search else None,
    )
    return IssueListResponse(issues=issues)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Issue)
def create_issue(
    body: IssueCreateRequest,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Issue:
    """Create an issue reported by the caller.

    Raises:
        ValidationError 422: asset_id not in the caller's organization
    """
    if body.asset_id and repos.assets.get(body.asset_id, tenant.org_id) is None:
        raise ValidationError("Asset does not belong to your organization.")

    values = body.model_dump(mode="json", exclude_none=True)
    values.update({"org_id": tenant.org_id, "reported_by": tenant.user_id})
    issue = repos.issues.create(values)
    logger.info(
        "Issue created",
        extra={
            "event": "issue.created",
            "issue_id": issue.id,
            "org_id": tenant.org_id,
            "priority": issue.priority.value,
        },
    )
    return issue


@router.patch("/{issue_id}/status", response_model=Issue)
def update_issue_status(
    issue_id: str,
    body: IssueStatusUpdateRequest,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Issue:
    """Move an issue to a new status. Resolving stamps resolved_at."""
    issue = repos.issues.update_status(issue_id, tenant.org_id, body.status)
    if issue is None:
        raise NotFoundOrForbidden("Issue not found")
    logger.info(
        "Issue status changed",
        extra={
            "event": "issue.status_changed",
            "issue_id": issue_id,
            "status": body.status.value,
        },
    )
    return issue


@router.delete("/{issue_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_issue(
    issue_id: str,
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> Response:
    if not repos.issues.delete(issue_id, tenant.org_id):
        raise NotFoundOrForbidden("Issue not found")
    logger.info("Issue deleted", extra={"event": "issue.deleted", "issue_id": issue_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
