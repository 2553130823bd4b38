"""Row models for the Supabase tables and the auth identity.

These are read-through copies: Supabase owns the rows, the service parses
what PostgREST returns into these models for the lifetime of one request.
Status and priority fields are closed enums, never free strings.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrgRole(str, Enum):
    """Role of a member within an organization."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class AssetStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class IssueStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class IssuePriority(str, Enum):
    """Issue priority, ordered from least to most urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_ORDER.index(self)


_PRIORITY_ORDER = [
    IssuePriority.LOW,
    IssuePriority.MEDIUM,
    IssuePriority.HIGH,
    IssuePriority.CRITICAL,
]


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    TRIALING = "trialing"


# Issue statuses counted as "active" on the dashboard
ACTIVE_ISSUE_STATUSES = (IssueStatus.OPEN, IssueStatus.IN_PROGRESS)


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AuthUser(_Row):
    """Identity as issued by Supabase Auth."""

    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None
    user_metadata: dict = Field(default_factory=dict)

    @property
    def is_verified(self) -> bool:
        return self.email_confirmed_at is not None


class AuthSession(_Row):
    """Authenticated session (JWT pair + identity)."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    user: AuthUser


class Profile(_Row):
    id: str
    user_id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Organization(_Row):
    id: str
    name: str
    owner_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Membership(_Row):
    id: str
    org_id: str
    user_id: str
    role: OrgRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Subscription(_Row):
    id: str
    org_id: str
    status: SubscriptionStatus
    current_asset_count: int = 0
    stripe_subscription_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_base_price: Optional[float] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Asset(_Row):
    id: str
    org_id: str
    name: str
    description: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    status: AssetStatus = AssetStatus.ACTIVE
    qr_code: Optional[str] = None
    serial_number: Optional[str] = None
    purchase_date: Optional[str] = None
    purchase_cost: Optional[float] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicAsset(_Row):
    """Projection readable by anonymous reporters."""

    id: str
    name: str
    location: Optional[str] = None
    org_id: Optional[str] = None
    serial_number: Optional[str] = None


class Issue(_Row):
    id: str
    org_id: str
    asset_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: IssueStatus = IssueStatus.OPEN
    priority: IssuePriority = IssuePriority.MEDIUM
    reported_by: Optional[str] = None
    assigned_to: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
