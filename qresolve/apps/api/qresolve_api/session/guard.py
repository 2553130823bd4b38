"""Route guard.

Pure admission policy over an IdentityState. Checks run in a fixed order
and the first match wins:

    loading                  -> LOADING            (wait)
    no user                  -> ANONYMOUS          (/login)
    email not confirmed      -> UNVERIFIED         (verify-email notice)
    resolution error         -> RESOLUTION_FAILED  (could not verify)
    no organization          -> NO_ORG             (/onboarding)
    otherwise                -> ADMITTED
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from qresolve_api.errors import (
    AuthenticationRequired,
    EmailNotVerified,
    OnboardingRequired,
    QResolveError,
    ResolutionFailed,
    SessionLoading,
)
from qresolve_api.session.state import IdentityState

LOGIN_PATH = "/login"
ONBOARDING_PATH = "/onboarding"


class GuardState(str, Enum):
    LOADING = "loading"
    ANONYMOUS = "anonymous"
    UNVERIFIED = "unverified"
    RESOLUTION_FAILED = "resolution_failed"
    NO_ORG = "no_org"
    ADMITTED = "admitted"


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    redirect_to: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.state is GuardState.ADMITTED


def evaluate_route_guard(state: IdentityState) -> GuardDecision:
    if state.loading:
        return GuardDecision(GuardState.LOADING)
    if state.user is None:
        return GuardDecision(GuardState.ANONYMOUS, redirect_to=LOGIN_PATH)
    if not state.user.is_verified:
        return GuardDecision(GuardState.UNVERIFIED)
    if state.error:
        return GuardDecision(GuardState.RESOLUTION_FAILED)
    if state.organization is None:
        return GuardDecision(GuardState.NO_ORG, redirect_to=ONBOARDING_PATH)
    return GuardDecision(GuardState.ADMITTED)


def guard_error(decision: GuardDecision, state: IdentityState) -> QResolveError:
    """Problem raised for a non-admitted decision."""
    extensions = {"guard_state": decision.state.value, "redirect_to": decision.redirect_to}
    if decision.state is GuardState.LOADING:
        return SessionLoading("Session is still loading. Retry shortly.", **extensions)
    if decision.state is GuardState.ANONYMOUS:
        return AuthenticationRequired("Please log in to continue.", **extensions)
    if decision.state is GuardState.UNVERIFIED:
        return EmailNotVerified(
            "Please verify your email address. Check your inbox for the "
            "confirmation link, then reload.",
            **extensions,
        )
    if decision.state is GuardState.RESOLUTION_FAILED:
        return ResolutionFailed(
            f"We could not verify your account: {state.error}", **extensions
        )
    if decision.state is GuardState.NO_ORG:
        return OnboardingRequired(
            "Create your organization to continue.", **extensions
        )
    raise ValueError(f"Decision is admitted: {decision.state}")
