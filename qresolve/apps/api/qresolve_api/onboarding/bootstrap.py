"""Organization bootstrap.

Creates the tenant for a verified user who has none: organization, owner
membership and trial subscription. The three inserts are independent
PostgREST calls, so a failure part-way is undone with compensating
deletes in reverse order. When an undo itself fails the orphaned rows are
reported in PartialBootstrapFailure.
"""

import logging
from typing import Callable

from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Organization, OrgRole
from qresolve_api.errors import (
    AuthenticationRequired,
    AuthError,
    BackendError,
    BootstrapConflict,
    PartialBootstrapFailure,
    ValidationError,
    backend_message,
)
from qresolve_api.session.guard import GuardState, evaluate_route_guard, guard_error
from qresolve_api.session.store import SessionStore

logger = logging.getLogger(__name__)


class OrganizationBootstrap:
    def __init__(self, store: SessionStore):
        self.store = store

    def create_organization(self, name: str) -> Organization:
        """Create the caller's organization.

        Args:
            name: Organization display name

        Returns:
            Organization: the new organization, also stored in the session

        Raises:
            AuthenticationRequired: No identity (no backend call made)
            AuthError: Identity not verified
            ResolutionFailed: Membership or organization could not be resolved
            BootstrapConflict: Identity already has an organization
            ValidationError: Blank name
            BackendError: An insert failed and was rolled back
            PartialBootstrapFailure: An insert failed and rollback failed too
        """
        state = self.store.state
        if state.user is None:
            raise AuthenticationRequired()
        if not state.user.is_verified:
            raise AuthError("Email address must be verified before creating an organization.")
        decision = evaluate_route_guard(state)
        if decision.state is GuardState.ADMITTED or state.membership is not None:
            raise BootstrapConflict("This account already belongs to an organization.")
        if decision.state is not GuardState.NO_ORG:
            # Unresolved membership may still exist; never create a second tenant
            raise guard_error(decision, state)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Organization name is required.")

        user_id = state.user.id
        repos = self.store.repositories()

        organization = repos.organizations.create(name, user_id)
        logger.info(
            "Organization created",
            extra={"event": "bootstrap.organization.created", "org_id": organization.id},
        )

        try:
            membership = repos.memberships.create(organization.id, user_id, OrgRole.OWNER)
        except BackendError as e:
            logger.warning(
                "Owner membership insert failed",
                extra={"event": "bootstrap.membership.failed", "org_id": organization.id},
            )
            self._compensate(
                repos,
                step="membership",
                cause=e,
                undo=[("organization", organization.id, repos.organizations.delete)],
            )
            raise

        try:
            repos.subscriptions.create_trial(organization.id)
        except BackendError as e:
            logger.warning(
                "Trial subscription insert failed",
                extra={"event": "bootstrap.subscription.failed", "org_id": organization.id},
            )
            self._compensate(
                repos,
                step="subscription",
                cause=e,
                undo=[
                    ("membership", membership.id, repos.memberships.delete),
                    ("organization", organization.id, repos.organizations.delete),
                ],
            )
            raise

        logger.info(
            "Organization bootstrap completed",
            extra={
                "event": "bootstrap.completed",
                "org_id": organization.id,
                "user_id": user_id,
            },
        )
        self.store.set_organization(organization, membership)
        self.store.refresh_organization()
        return organization

    def _compensate(
        self,
        repos: Repositories,
        *,
        step: str,
        cause: BackendError,
        undo: list[tuple[str, str, Callable[[str], None]]],
    ) -> None:
        """Run deletes in order; raise PartialBootstrapFailure if any fails."""
        orphaned: dict[str, str] = {}
        for kind, row_id, delete in undo:
            if orphaned:
                # Earlier delete failed; later rows depend on it
                orphaned[kind] = row_id
                continue
            try:
                delete(row_id)
            except Exception as e:
                orphaned[kind] = row_id
                logger.error(
                    "Bootstrap compensation failed",
                    extra={
                        "event": "bootstrap.compensation.failed",
                        "step": step,
                        "row": kind,
                        "row_id": row_id,
                        "error": backend_message(e),
                    },
                )

        if orphaned:
            raise PartialBootstrapFailure(step, cause.detail, orphaned) from cause
        logger.info(
            "Bootstrap rolled back",
            extra={"event": "bootstrap.rolled_back", "step": step},
        )
