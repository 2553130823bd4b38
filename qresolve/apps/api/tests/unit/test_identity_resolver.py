"""IdentityResolver: user -> profile -> membership -> organization."""

import pytest

from qresolve_api.entities import OrgRole
from qresolve_api.errors import AmbiguousMembershipError, BackendError, NotFoundOrForbidden
from qresolve_api.session.resolver import IdentityResolver


def test_resolves_single_membership(backend, repos):
    member = backend.add_member("owner@acme.test")

    resolution = IdentityResolver(repos).resolve(member["user_id"])

    assert resolution.profile.user_id == member["user_id"]
    assert resolution.organization.id == member["org_id"]
    assert resolution.membership.role is OrgRole.OWNER


def test_no_membership_means_no_organization(backend, repos):
    member = backend.add_member("solo@acme.test", org_name=None)

    resolution = IdentityResolver(repos).resolve(member["user_id"])

    assert resolution.profile is not None
    assert resolution.membership is None
    assert resolution.organization is None


def test_missing_profile_is_not_an_error(backend, repos):
    member = backend.add_member("owner@acme.test")
    backend.db.rows["profiles"] = []

    resolution = IdentityResolver(repos).resolve(member["user_id"])

    assert resolution.profile is None
    assert resolution.organization is not None


def test_several_memberships_rejected(backend, repos):
    member = backend.add_member("owner@acme.test")
    backend.join("owner-too@acme.test", member["org_id"])
    other = backend.db.seed("organizations", {"name": "Second", "owner_id": member["user_id"]})
    backend.db.seed(
        "organization_memberships",
        {"org_id": other["id"], "user_id": member["user_id"], "role": "admin"},
    )

    with pytest.raises(AmbiguousMembershipError) as exc_info:
        IdentityResolver(repos).resolve_organization(member["user_id"])

    assert exc_info.value.count == 2
    assert exc_info.value.status_code == 409


def test_unreadable_organization_raises(backend, repos):
    member = backend.add_member("owner@acme.test")
    backend.db.rows["organizations"] = []

    with pytest.raises(NotFoundOrForbidden):
        IdentityResolver(repos).resolve_organization(member["user_id"])


def test_backend_failure_propagates(backend, repos):
    member = backend.add_member("owner@acme.test")
    backend.db.fail("organizations", "select", "JWT expired")

    with pytest.raises(BackendError, match="JWT expired"):
        IdentityResolver(repos).resolve(member["user_id"])
