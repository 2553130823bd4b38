"""SQLAlchemy ORM models for the QResolve schema.

The service never queries Postgres through these models; it reads and
writes through Supabase PostgREST (db.tables). They describe the schema
for Alembic and keep the enum check constraints in one place.

auth.users is owned by Supabase Auth; user ids here are plain UUID
columns referencing it (the FK is created in the migration).
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DATE,
    INTEGER,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    UUID,
    CheckConstraint,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from qresolve_api.entities import AssetStatus, IssuePriority, IssueStatus, OrgRole, SubscriptionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_check(column: str, enum: type[Enum], name: str) -> CheckConstraint:
    """CHECK constraint restricting a TEXT column to an enum's values."""
    values = ", ".join(f"'{member.value}'" for member in enum)
    return CheckConstraint(f"{column} IN ({values})", name=name)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("now()"),
    )


_uuid_pk = dict(primary_key=True, server_default=text("gen_random_uuid()"))


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), **_uuid_pk)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)


class Organization(TimestampMixin, Base):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), **_uuid_pk)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    owner_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)

    __table_args__ = (
        CheckConstraint("length(btrim(name)) > 0", name="ck_organizations_name_not_blank"),
        Index("idx_organizations_owner", "owner_id"),
    )


class OrganizationMembership(TimestampMixin, Base):
    """Links a user to an organization. At most one row per user."""

    __tablename__ = "organization_memberships"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), **_uuid_pk)
    org_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default=OrgRole.MEMBER.value)

    __table_args__ = (
        enum_check("role", OrgRole, "ck_memberships_role"),
        UniqueConstraint("user_id", name="uq_memberships_user"),
        Index("idx_memberships_org", "org_id"),
    )


class Subscription(TimestampMixin, Base):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), **_uuid_pk)
    org_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default=SubscriptionStatus.TRIALING.value)
    current_asset_count: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0, server_default="0")
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    stripe_base_price: Mapped[Optional[float]] = mapped_column(NUMERIC(10, 2), nullable=True)
    current_period_start: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        enum_check("status", SubscriptionStatus, "ck_subscriptions_status"),
        UniqueConstraint("org_id", name="uq_subscriptions_org"),
    )


class Asset(TimestampMixin, Base):
    __tablename__ = "assets"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), **_uuid_pk)
    org_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default=AssetStatus.ACTIVE.value)
    qr_code: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    purchase_date: Mapped[Optional[date]] = mapped_column(DATE, nullable=True)
    purchase_cost: Mapped[Optional[float]] = mapped_column(NUMERIC(12, 2), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), nullable=True)

    __table_args__ = (
        enum_check("status", AssetStatus, "ck_assets_status"),
        Index("idx_assets_org_created", "org_id", "created_at"),
    )


class Issue(TimestampMixin, Base):
    __tablename__ = "issues"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), **_uuid_pk)
    org_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    asset_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("assets.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default=IssueStatus.OPEN.value)
    priority: Mapped[str] = mapped_column(TEXT, nullable=False, default=IssuePriority.MEDIUM.value)
    # Anonymous reports carry a synthetic id, so no FK to auth.users
    reported_by: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), nullable=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        enum_check("status", IssueStatus, "ck_issues_status"),
        enum_check("priority", IssuePriority, "ck_issues_priority"),
        Index("idx_issues_org_created", "org_id", "created_at"),
        Index("idx_issues_org_status", "org_id", "status"),
        Index("idx_issues_asset", "asset_id"),
    )
