"""Pydantic schemas for API requests/responses."""

from datetime import date
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, Field

from qresolve_api.entities import (
    Asset,
    AssetStatus,
    Issue,
    IssuePriority,
    IssueStatus,
    Membership,
    Organization,
    Profile,
)

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


# ============================================================================
# RFC 9457 Problem Details
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    Extension members:
    - redirect_to: client route the route guard sends the caller to
    - guard_state: route guard outcome for session problems
    - retry: "reload" when the client should offer a manual reload
    """

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] = Field(..., description="Human-readable explanation or structured error details")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")
    redirect_to: Optional[str] = Field(None, description="Client route to navigate to")
    guard_state: Optional[str] = Field(None, description="Route guard state")
    retry: Optional[str] = Field(None, description="Suggested manual retry action")
    errors: Optional[list[dict[str, Any]]] = Field(None, description="Field validation errors")


# ============================================================================
# Session / Route Guard
# ============================================================================


class GuardDecisionResponse(BaseModel):
    state: str = Field(..., description="loading | anonymous | unverified | resolution_failed | no_org | admitted")
    redirect_to: Optional[str] = None


class SessionResponse(BaseModel):
    """Response for GET /v1/session."""

    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    email_confirmed: bool = False
    profile: Optional[Profile] = None
    organization: Optional[Organization] = None
    membership: Optional[Membership] = None
    error: Optional[str] = None
    guard: GuardDecisionResponse


# ============================================================================
# Auth
# ============================================================================


class SignupRequest(BaseModel):
    """Request body for POST /v1/auth/signup."""

    email: str = Field(..., description="User email address", pattern=EMAIL_PATTERN)
    password: str = Field(..., description="User password (minimum 6 characters)", min_length=6)
    full_name: str = Field(..., description="Display name", min_length=1, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /v1/auth/login."""

    email: str = Field(..., description="User email address", pattern=EMAIL_PATTERN)
    password: str = Field(..., description="User password", min_length=1)


class AuthResponse(BaseModel):
    """Response for successful auth operations."""

    user_id: str = Field(..., description="Supabase user UUID")
    email: str = Field(..., description="User email")
    email_confirmed: bool = Field(..., description="Email confirmation status")
    access_token: Optional[str] = Field(None, description="JWT access token (only for login)")
    refresh_token: Optional[str] = Field(None, description="JWT refresh token (only for login)")
    guard: Optional[GuardDecisionResponse] = Field(None, description="Where the client goes next")
    message: Optional[str] = Field(None, description="Additional message (e.g., 'Check your email')")


# ============================================================================
# Onboarding
# ============================================================================


class OrganizationCreateRequest(BaseModel):
    name: str = Field(..., description="Organization name", max_length=255)


class OrganizationCreateResponse(BaseModel):
    organization: Organization
    guard: GuardDecisionResponse


# ============================================================================
# Public reporting
# ============================================================================


class ReportHintsResponse(BaseModel):
    name: str
    location: str
    org_id: str


class PublicAssetResponse(BaseModel):
    id: str
    name: str
    location: Optional[str] = None
    serial_number: Optional[str] = None


class ReportPageResponse(BaseModel):
    """Response for GET /v1/report/{asset_id}."""

    state: str
    hints: ReportHintsResponse
    asset: PublicAssetResponse
    display_name: str
    display_location: str


class ReportSubmitRequest(BaseModel):
    """Request body for POST /v1/report/{asset_id}."""

    title: NonBlankStr = Field(..., min_length=1, max_length=255)
    description: NonBlankStr = Field(..., min_length=1)
    priority: IssuePriority = IssuePriority.MEDIUM
    reporter_name: Optional[str] = Field(None, max_length=255)
    reporter_email: Optional[str] = Field(None, max_length=255)


class ReportSubmitResponse(BaseModel):
    state: str
    issue_id: str
    asset_name: str
    message: str


# ============================================================================
# Assets
# ============================================================================


class AssetCreateRequest(BaseModel):
    name: NonBlankStr = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    serial_number: Optional[str] = None
    status: AssetStatus = AssetStatus.ACTIVE
    purchase_date: Optional[date] = None
    purchase_cost: Optional[float] = Field(None, ge=0)


class AssetListResponse(BaseModel):
    assets: list[Asset]


class ReportUrlResponse(BaseModel):
    asset_id: str
    report_url: str


# ============================================================================
# Issues
# ============================================================================


class IssueCreateRequest(BaseModel):
    title: NonBlankStr = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    priority: IssuePriority = IssuePriority.MEDIUM
    status: IssueStatus = IssueStatus.OPEN
    asset_id: Optional[str] = None
    assigned_to: Optional[str] = None


class IssueStatusUpdateRequest(BaseModel):
    status: IssueStatus


class IssueListResponse(BaseModel):
    issues: list[Issue]


# ============================================================================
# Dashboard / Reports
# ============================================================================


class DashboardStatsResponse(BaseModel):
    organization_name: str
    total_assets: int
    active_issues: int
    critical_alerts: int
    resolved_this_week: int
    recent_issues: list[Issue]


class ReportSummaryResponse(BaseModel):
    total_issues: int
    resolved_issues: int
    avg_resolution_days: Optional[float] = None
    by_status: dict[str, int]
    by_priority: dict[str, int]


# ============================================================================
# Settings
# ============================================================================


class ProfileUpdateRequest(BaseModel):
    full_name: NonBlankStr = Field(..., min_length=1, max_length=255)


class OrganizationUpdateRequest(BaseModel):
    name: NonBlankStr = Field(..., min_length=1, max_length=255)

