"""Application error taxonomy.

Every error raised by the session, onboarding and reporting layers derives
from QResolveError. The global exception handler in main.py renders them as
RFC 9457 problem documents, so callers only raise; they never build
responses themselves.

Taxonomy:
- AuthError: Supabase rejected sign-in/sign-up (message surfaced verbatim)
- NotFoundOrForbidden: lookup returned nothing (absent or hidden by RLS)
- PartialBootstrapFailure: onboarding left orphaned rows behind
- ValidationError: client-side check failed before any backend call
- BackendError: Supabase rejected a table call (message surfaced verbatim)
"""

from typing import Optional


class QResolveError(Exception):
    """Base class for errors rendered as problem+json."""

    status_code: int = 500
    title: str = "Internal Server Error"
    error_type: str = "https://api.qresolve.app/problems/internal-error"

    def __init__(self, detail: str, **extensions: object):
        super().__init__(detail)
        self.detail = detail
        self.extensions = {k: v for k, v in extensions.items() if v is not None}


class AuthError(QResolveError):
    """Sign-in or sign-up rejected by the auth backend."""

    status_code = 401
    title = "Authentication Failed"
    error_type = "https://api.qresolve.app/problems/auth-failed"


class AuthenticationRequired(AuthError):
    """Operation requires an authenticated identity."""

    title = "Authentication Required"
    error_type = "https://api.qresolve.app/problems/authentication-required"

    def __init__(self, detail: str = "Not authenticated", **extensions: object):
        super().__init__(detail, **extensions)


class EmailNotVerified(QResolveError):
    status_code = 403
    title = "Email Verification Required"
    error_type = "https://api.qresolve.app/problems/email-not-verified"


class OnboardingRequired(QResolveError):
    status_code = 403
    title = "Onboarding Required"
    error_type = "https://api.qresolve.app/problems/onboarding-required"


class InsufficientRole(QResolveError):
    status_code = 403
    title = "Forbidden"
    error_type = "https://api.qresolve.app/problems/insufficient-role"


class ResolutionFailed(QResolveError):
    """Identity is verified but its organization could not be resolved."""

    status_code = 403
    title = "Account Verification Failed"
    error_type = "https://api.qresolve.app/problems/resolution-failed"


class NotFoundOrForbidden(QResolveError):
    """Row absent or invisible to the caller; the two are not distinguished."""

    status_code = 404
    title = "Not Found"
    error_type = "https://api.qresolve.app/problems/not-found"


class AmbiguousMembershipError(QResolveError):
    """Identity has more than one organization membership."""

    status_code = 409
    title = "Ambiguous Membership"
    error_type = "https://api.qresolve.app/problems/ambiguous-membership"

    def __init__(self, user_id: str, count: int):
        super().__init__(
            f"Account is linked to {count} organizations; exactly one is supported."
        )
        self.user_id = user_id
        self.count = count


class BootstrapConflict(QResolveError):
    status_code = 409
    title = "Organization Already Exists"
    error_type = "https://api.qresolve.app/problems/bootstrap-conflict"


class ValidationError(QResolveError):
    status_code = 422
    title = "Validation Failed"
    error_type = "https://api.qresolve.app/problems/validation-error"


class PartialBootstrapFailure(QResolveError):
    """Organization setup failed and its compensation failed too."""

    status_code = 500
    title = "Organization Setup Incomplete"
    error_type = "https://api.qresolve.app/problems/partial-bootstrap"

    def __init__(self, step: str, cause: str, orphaned: dict[str, str]):
        super().__init__(
            f"Organization setup failed at '{step}' ({cause}) and could not be "
            "rolled back. Please contact support."
        )
        self.step = step
        self.cause = cause
        self.orphaned = orphaned


class BackendError(QResolveError):
    """Supabase rejected a table call."""

    status_code = 502
    title = "Backend Request Failed"
    error_type = "https://api.qresolve.app/problems/backend-error"

    def __init__(self, detail: str, code: Optional[str] = None):
        super().__init__(detail)
        self.code = code


class SessionLoading(QResolveError):
    status_code = 503
    title = "Session Loading"
    error_type = "https://api.qresolve.app/problems/session-loading"


def backend_message(exc: BaseException) -> str:
    """Message the backend attached to an exception (supabase errors carry .message)."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or type(exc).__name__
