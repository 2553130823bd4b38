"""Repositories over the Supabase tables.

Each repository wraps one table and speaks in entity models. Lookups that
find nothing return None; callers decide whether that is an error.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from postgrest.types import ReturnMethod

from qresolve_api.db.tables import Filter, Row, TableGateway, eq, gte, ilike, in_, neq
from qresolve_api.entities import (
    ACTIVE_ISSUE_STATUSES,
    Asset,
    AssetStatus,
    Issue,
    IssuePriority,
    IssueStatus,
    Membership,
    Organization,
    OrgRole,
    Profile,
    PublicAsset,
    Subscription,
    SubscriptionStatus,
)

PROFILES = "profiles"
ORGANIZATIONS = "organizations"
MEMBERSHIPS = "organization_memberships"
SUBSCRIPTIONS = "subscriptions"
ASSETS = "assets"
ISSUES = "issues"

PUBLIC_ASSET_COLUMNS = "id, name, location, org_id, serial_number"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProfileRepository:
    def __init__(self, tables: TableGateway):
        self.tables = tables

    def get_by_user(self, user_id: str) -> Optional[Profile]:
        rows = self.tables.select(PROFILES, filters=[eq("user_id", user_id)], limit=1)
        return Profile.model_validate(rows[0]) if rows else None

    def create(self, user_id: str, full_name: str, email: str) -> Profile:
        row = self.tables.insert(
            PROFILES, {"user_id": user_id, "full_name": full_name, "email": email}
        )
        return Profile.model_validate(row)

    def update_full_name(self, user_id: str, full_name: str) -> Optional[Profile]:
        rows = self.tables.update(
            PROFILES, {"full_name": full_name}, filters=[eq("user_id", user_id)]
        )
        return Profile.model_validate(rows[0]) if rows else None


class MembershipRepository:
    def __init__(self, tables: TableGateway):
        self.tables = tables

    def list_for_user(self, user_id: str, limit: int = 2) -> list[Membership]:
        """Memberships of a user.

        Fetches up to `limit` rows so callers can detect more than one
        without pulling the whole set.
        """
        rows = self.tables.select(
            MEMBERSHIPS,
            filters=[eq("user_id", user_id)],
            order_by="created_at",
            limit=limit,
        )
        return [Membership.model_validate(row) for row in rows]

    def create(self, org_id: str, user_id: str, role: OrgRole) -> Membership:
        row = self.tables.insert(
            MEMBERSHIPS, {"org_id": org_id, "user_id": user_id, "role": role.value}
        )
        return Membership.model_validate(row)

    def delete(self, membership_id: str) -> None:
        self.tables.delete(MEMBERSHIPS, filters=[eq("id", membership_id)])


class OrganizationRepository:
    def __init__(self, tables: TableGateway):
        self.tables = tables

    def get(self, org_id: str) -> Optional[Organization]:
        rows = self.tables.select(ORGANIZATIONS, filters=[eq("id", org_id)], limit=1)
        return Organization.model_validate(rows[0]) if rows else None

    def create(self, name: str, owner_id: str) -> Organization:
        row = self.tables.insert(ORGANIZATIONS, {"name": name, "owner_id": owner_id})
        return Organization.model_validate(row)

    def rename(self, org_id: str, name: str) -> Optional[Organization]:
        rows = self.tables.update(ORGANIZATIONS, {"name": name}, filters=[eq("id", org_id)])
        return Organization.model_validate(rows[0]) if rows else None

    def delete(self, org_id: str) -> None:
        self.tables.delete(ORGANIZATIONS, filters=[eq("id", org_id)])


class SubscriptionRepository:
    def __init__(self, tables: TableGateway):
        self.tables = tables

    def create_trial(self, org_id: str) -> Subscription:
        row = self.tables.insert(
            SUBSCRIPTIONS, {"org_id": org_id, "status": SubscriptionStatus.TRIALING.value}
        )
        return Subscription.model_validate(row)


class AssetRepository:
    def __init__(self, tables: TableGateway):
        self.tables = tables

    def list_for_org(self, org_id: str, status: Optional[AssetStatus] = None) -> list[Asset]:
        filters: list[Filter] = [eq("org_id", org_id)]
        if status is not None:
            filters.append(eq("status", status.value))
        rows = self.tables.select(
            ASSETS, filters=filters, order_by="created_at", descending=True
        )
        return [Asset.model_validate(row) for row in rows]

    def get(self, asset_id: str, org_id: str) -> Optional[Asset]:
        rows = self.tables.select(
            ASSETS, filters=[eq("id", asset_id), eq("org_id", org_id)], limit=1
        )
        return Asset.model_validate(rows[0]) if rows else None

    def get_public(self, asset_id: str) -> Optional[PublicAsset]:
        rows = self.tables.select(
            ASSETS, columns=PUBLIC_ASSET_COLUMNS, filters=[eq("id", asset_id)], limit=1
        )
        return PublicAsset.model_validate(rows[0]) if rows else None

    def create(self, org_id: str, created_by: str, values: Row) -> Asset:
        row = dict(values)
        row.update({"org_id": org_id, "created_by": created_by})
        return Asset.model_validate(self.tables.insert(ASSETS, row))

    def delete(self, asset_id: str, org_id: str) -> bool:
        deleted = self.tables.delete(
            ASSETS, filters=[eq("id", asset_id), eq("org_id", org_id)]
        )
        return bool(deleted)

    def count_for_org(self, org_id: str) -> int:
        return self.tables.count(ASSETS, filters=[eq("org_id", org_id)])


class IssueRepository:
    def __init__(self, tables: TableGateway):
        self.tables = tables

    def list_for_org(
        self,
        org_id: str,
        *,
        status: Optional[IssueStatus] = None,
        priority: Optional[IssuePriority] = None,
        search: Optional[str] = None,
        asset_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Issue]:
        filters: list[Filter] = [eq("org_id", org_id)]
        if asset_id is not None:
            filters.append(eq("asset_id", asset_id))
        if status is not None:
            filters.append(eq("status", status.value))
        if priority is not None:
            filters.append(eq("priority", priority.value))
        if search:
            filters.append(ilike("title", f"%{search}%"))
        rows = self.tables.select(
            ISSUES, filters=filters, order_by="created_at", descending=True, limit=limit
        )
        return [Issue.model_validate(row) for row in rows]

    def create(self, values: Row) -> Issue:
        return Issue.model_validate(self.tables.insert(ISSUES, values))

    def create_unread(self, values: Row) -> Issue:
        """Insert without reading the row back (anon may insert issues, never select them)."""
        row = dict(values)
        row.setdefault("id", str(uuid.uuid4()))
        self.tables.insert(ISSUES, row, returning=ReturnMethod.minimal)
        return Issue.model_validate(row)

    def update_status(self, issue_id: str, org_id: str, status: IssueStatus) -> Optional[Issue]:
        values: Row = {"status": status.value}
        if status is IssueStatus.RESOLVED:
            values["resolved_at"] = _utcnow_iso()
        rows = self.tables.update(
            ISSUES, values, filters=[eq("id", issue_id), eq("org_id", org_id)]
        )
        return Issue.model_validate(rows[0]) if rows else None

    def delete(self, issue_id: str, org_id: str) -> bool:
        deleted = self.tables.delete(
            ISSUES, filters=[eq("id", issue_id), eq("org_id", org_id)]
        )
        return bool(deleted)

    def count_active(self, org_id: str) -> int:
        return self.tables.count(
            ISSUES,
            filters=[eq("org_id", org_id), in_("status", [s.value for s in ACTIVE_ISSUE_STATUSES])],
        )

    def count_open_critical(self, org_id: str) -> int:
        return self.tables.count(
            ISSUES,
            filters=[
                eq("org_id", org_id),
                eq("priority", IssuePriority.CRITICAL.value),
                neq("status", IssueStatus.CLOSED.value),
            ],
        )

    def count_resolved_since(self, org_id: str, since: datetime) -> int:
        return self.tables.count(
            ISSUES,
            filters=[
                eq("org_id", org_id),
                eq("status", IssueStatus.RESOLVED.value),
                gte("resolved_at", since.isoformat()),
            ],
        )

    def select_for_summary(self, org_id: str) -> list[Row]:
        return self.tables.select(
            ISSUES,
            columns="status, priority, created_at, resolved_at",
            filters=[eq("org_id", org_id)],
        )


class Repositories:
    """All repositories bound to one TableGateway (one JWT scope)."""

    def __init__(self, tables: TableGateway):
        self.tables = tables
        self.profiles = ProfileRepository(tables)
        self.memberships = MembershipRepository(tables)
        self.organizations = OrganizationRepository(tables)
        self.subscriptions = SubscriptionRepository(tables)
        self.assets = AssetRepository(tables)
        self.issues = IssueRepository(tables)


__all__: Sequence[str] = [
    "AssetRepository",
    "IssueRepository",
    "MembershipRepository",
    "OrganizationRepository",
    "ProfileRepository",
    "Repositories",
    "SubscriptionRepository",
]
