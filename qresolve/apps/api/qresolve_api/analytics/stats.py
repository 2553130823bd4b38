"""Dashboard and report aggregates for one organization."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import TypeAdapter

from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Issue, IssuePriority, IssueStatus

RECENT_ISSUES_LIMIT = 5
RESOLVED_WINDOW = timedelta(days=7)

_TIMESTAMP = TypeAdapter(datetime)


@dataclass
class DashboardStats:
    total_assets: int
    active_issues: int
    critical_alerts: int
    resolved_this_week: int
    recent_issues: list[Issue] = field(default_factory=list)


@dataclass
class ReportSummary:
    total_issues: int
    resolved_issues: int
    avg_resolution_days: Optional[float]
    by_status: dict[str, int]
    by_priority: dict[str, int]


def build_dashboard_stats(
    repos: Repositories, org_id: str, now: Optional[datetime] = None
) -> DashboardStats:
    now = now or datetime.now(timezone.utc)
    return DashboardStats(
        total_assets=repos.assets.count_for_org(org_id),
        active_issues=repos.issues.count_active(org_id),
        critical_alerts=repos.issues.count_open_critical(org_id),
        resolved_this_week=repos.issues.count_resolved_since(org_id, now - RESOLVED_WINDOW),
        recent_issues=repos.issues.list_for_org(org_id, limit=RECENT_ISSUES_LIMIT),
    )


def _parse_timestamp(value: object) -> Optional[datetime]:
    if not value:
        return None
    # PostgREST trims trailing zeros from fractional seconds
    parsed = _TIMESTAMP.validate_python(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_report_summary(repos: Repositories, org_id: str) -> ReportSummary:
    """Issue totals, status/priority breakdown and mean resolution time.

    Resolution time is resolved_at - created_at over issues that have both;
    None when no issue qualifies.
    """
    rows = repos.issues.select_for_summary(org_id)

    by_status = {status.value: 0 for status in IssueStatus}
    by_priority = {priority.value: 0 for priority in IssuePriority}
    durations: list[float] = []

    for row in rows:
        if row.get("status") in by_status:
            by_status[row["status"]] += 1
        if row.get("priority") in by_priority:
            by_priority[row["priority"]] += 1

        created_at = _parse_timestamp(row.get("created_at"))
        resolved_at = _parse_timestamp(row.get("resolved_at"))
        if created_at and resolved_at and resolved_at >= created_at:
            durations.append((resolved_at - created_at).total_seconds() / 86400)

    avg = round(sum(durations) / len(durations), 2) if durations else None
    return ReportSummary(
        total_issues=len(rows),
        resolved_issues=by_status[IssueStatus.RESOLVED.value],
        avg_resolution_days=avg,
        by_status=by_status,
        by_priority=by_priority,
    )
