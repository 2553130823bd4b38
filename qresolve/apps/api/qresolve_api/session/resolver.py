"""Identity resolution: user -> profile -> membership -> organization."""

import logging
from dataclasses import dataclass
from typing import Optional

from qresolve_api.db.repositories import Repositories
from qresolve_api.entities import Membership, Organization, Profile
from qresolve_api.errors import AmbiguousMembershipError, NotFoundOrForbidden

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    profile: Optional[Profile]
    membership: Optional[Membership]
    organization: Optional[Organization]


class IdentityResolver:
    """Resolves the derived parts of an identity from the tables.

    A missing profile is normal (signup inserts it best-effort). A missing
    membership means the user has not been onboarded. A membership whose
    organization cannot be read is an error: no placeholder organization
    is ever produced.
    """

    def __init__(self, repos: Repositories):
        self.repos = repos

    def resolve(self, user_id: str) -> Resolution:
        profile = self.repos.profiles.get_by_user(user_id)
        membership, organization = self.resolve_organization(user_id)
        return Resolution(profile=profile, membership=membership, organization=organization)

    def resolve_organization(
        self, user_id: str
    ) -> tuple[Optional[Membership], Optional[Organization]]:
        """Fetch the single membership of a user and its organization.

        Raises:
            AmbiguousMembershipError: More than one membership
            NotFoundOrForbidden: Membership points at an unreadable organization
            BackendError: A table call failed
        """
        memberships = self.repos.memberships.list_for_user(user_id, limit=2)
        if len(memberships) > 1:
            logger.warning(
                "User has several memberships",
                extra={"event": "session.membership.ambiguous", "user_id": user_id},
            )
            raise AmbiguousMembershipError(user_id, len(memberships))
        if not memberships:
            return None, None

        membership = memberships[0]
        organization = self.repos.organizations.get(membership.org_id)
        if organization is None:
            logger.warning(
                "Membership organization not readable",
                extra={
                    "event": "session.organization.missing",
                    "user_id": user_id,
                    "org_id": membership.org_id,
                },
            )
            raise NotFoundOrForbidden(
                "Your organization could not be loaded. Please contact support."
            )
        return membership, organization
