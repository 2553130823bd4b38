"""Session layer: identity resolution, session store and route guard."""

from qresolve_api.session.deferred import DeferredQueue
from qresolve_api.session.guard import (
    GuardDecision,
    GuardState,
    evaluate_route_guard,
    guard_error,
)
from qresolve_api.session.resolver import IdentityResolver, Resolution
from qresolve_api.session.state import IdentityState
from qresolve_api.session.store import SessionStore

__all__ = [
    "DeferredQueue",
    "GuardDecision",
    "GuardState",
    "IdentityResolver",
    "IdentityState",
    "Resolution",
    "SessionStore",
    "evaluate_route_guard",
    "guard_error",
]
