"""Identity state snapshot."""

from dataclasses import dataclass, replace
from typing import Optional

from qresolve_api.entities import AuthSession, AuthUser, Membership, Organization, Profile


@dataclass
class IdentityState:
    """Who the caller is and which organization they belong to.

    Starts with loading=True and no user. Every resolution, successful or
    not, ends with loading=False. When resolution fails, profile,
    membership and organization are None and error holds the message.
    """

    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None
    profile: Optional[Profile] = None
    organization: Optional[Organization] = None
    membership: Optional[Membership] = None
    loading: bool = True
    error: Optional[str] = None

    def snapshot(self) -> "IdentityState":
        return replace(self)

    @classmethod
    def anonymous(cls) -> "IdentityState":
        return cls(loading=False)
