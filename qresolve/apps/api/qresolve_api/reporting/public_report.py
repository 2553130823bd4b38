"""Anonymous issue reporting against a scanned asset.

The asset is always re-read by its path id; URL hints are for display
only. Each submission gets a fresh synthetic reporter id, so two
anonymous reports are never attributed to the same person.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Issue, IssuePriority, IssueStatus, PublicAsset
from qresolve_api.errors import BackendError, NotFoundOrForbidden, ValidationError
from qresolve_api.reporting.urls import ReportHints

logger = logging.getLogger(__name__)

ASSET_UNVERIFIED_MESSAGE = (
    "Could not verify asset details. Please scan the code again or try refreshing."
)
MISSING_ORG_MESSAGE = "Missing asset organization information."


class ReportFlowState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    SUBMITTED = "submitted"


class ReportFlow:
    """Lifecycle of one report page.

    LOADING -> READY | FAILED, READY -> SUBMITTED. A failed submit keeps
    the flow READY so the form can be sent again.
    """

    def __init__(self, hints: ReportHints):
        self.hints = hints
        self.state = ReportFlowState.LOADING
        self.asset: Optional[PublicAsset] = None
        self.error: Optional[str] = None

    def _expect(self, *states: ReportFlowState) -> None:
        if self.state not in states:
            raise RuntimeError(f"Invalid report flow transition from {self.state.value}")

    def asset_loaded(self, asset: PublicAsset) -> None:
        self._expect(ReportFlowState.LOADING)
        self.asset = asset
        self.state = ReportFlowState.READY

    def asset_failed(self, message: str) -> None:
        self._expect(ReportFlowState.LOADING)
        self.error = message
        self.state = ReportFlowState.FAILED

    def submit_failed(self, message: str) -> None:
        self._expect(ReportFlowState.READY)
        self.error = message

    def submitted(self) -> None:
        self._expect(ReportFlowState.READY)
        self.error = None
        self.state = ReportFlowState.SUBMITTED

    @property
    def display_name(self) -> str:
        return self.asset.name if self.asset else self.hints.name

    @property
    def display_location(self) -> str:
        if self.asset and self.asset.location:
            return self.asset.location
        return self.hints.location


@dataclass(frozen=True)
class ReportSubmission:
    title: str
    description: str
    priority: IssuePriority = IssuePriority.MEDIUM
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None


def compose_description(
    description: str, reporter_name: Optional[str], reporter_email: Optional[str]
) -> str:
    """Append the reporter footer to the issue body."""
    return (
        f"{description}\n\n---\n"
        f"Reported by: {reporter_name or 'Anonymous'}\n"
        f"Contact: {reporter_email or 'N/A'}"
    ).strip()


class PublicReportService:
    def __init__(self, repos: Repositories):
        self.repos = repos

    def load(self, asset_id: str, hints: ReportHints) -> ReportFlow:
        """Fetch the asset behind a scanned code.

        Raises:
            NotFoundOrForbidden: Asset missing, unreadable or the fetch failed
                (carries retry="reload"; nothing is retried here)
        """
        flow = ReportFlow(hints)
        try:
            asset = self.repos.assets.get_public(asset_id)
        except BackendError as e:
            logger.warning(
                "Public asset fetch failed",
                extra={"event": "report.asset.fetch_failed", "asset_id": asset_id, "error": e.detail},
            )
            asset = None

        if asset is None:
            flow.asset_failed(ASSET_UNVERIFIED_MESSAGE)
            raise NotFoundOrForbidden(ASSET_UNVERIFIED_MESSAGE, retry="reload")

        flow.asset_loaded(asset)
        return flow

    def submit(self, flow: ReportFlow, submission: ReportSubmission) -> Issue:
        """Insert an anonymous issue for the loaded asset.

        org_id comes from the fetched asset and asset_id from the asset row
        fetched by path id; hints are never consulted.

        Raises:
            ValidationError: Asset has no organization (no insert made)
            BackendError: Insert rejected (message verbatim)
        """
        asset = flow.asset
        if asset is None or not asset.org_id:
            message = MISSING_ORG_MESSAGE
            if flow.state is ReportFlowState.READY:
                flow.submit_failed(message)
            raise ValidationError(message)

        try:
            issue = self.repos.issues.create_unread(
                {
                    "org_id": asset.org_id,
                    "asset_id": asset.id,
                    "title": submission.title,
                    "description": compose_description(
                        submission.description,
                        submission.reporter_name,
                        submission.reporter_email,
                    ),
                    "priority": submission.priority.value,
                    "status": IssueStatus.OPEN.value,
                    "reported_by": str(uuid.uuid4()),
                }
            )
        except BackendError as e:
            flow.submit_failed(e.detail)
            logger.warning(
                "Public report rejected",
                extra={"event": "report.submit.failed", "asset_id": asset.id, "error": e.detail},
            )
            raise

        flow.submitted()
        logger.info(
            "Public report submitted",
            extra={
                "event": "report.submit.completed",
                "asset_id": asset.id,
                "org_id": asset.org_id,
                "issue_id": issue.id,
                "priority": submission.priority.value,
            },
        )
        return issue
