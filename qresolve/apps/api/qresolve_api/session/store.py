"""Session store.

One SessionStore per request (or per client session). It listens to auth
state changes, keeps the IdentityState current and re-resolves profile and
organization whenever the session changes.

Lifecycle:
    store = SessionStore(auth, tables_for)
    store.start(session)    # INITIAL_SESSION, resolved and settled
    ...
    store.close()

Auth callbacks only record the session; resolution is deferred onto a
DeferredQueue and runs on settle(), after the callback has returned.
"""

import logging
from typing import Callable, Optional

from qresolve_api.auth.gateway import AuthGateway, AuthSubscription
from qresolve_api.db.repositories import Repositories
from qresolve_api.db.tables import TableGateway
from qresolve_api.entities import AuthSession, AuthUser, Membership, Organization, Profile
from qresolve_api.session.deferred import DeferredQueue
from qresolve_api.session.resolver import IdentityResolver
from qresolve_api.session.state import IdentityState

logger = logging.getLogger(__name__)

INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

TablesFactory = Callable[[Optional[str]], TableGateway]
StateListener = Callable[[IdentityState], None]

_CURRENT = object()


class SessionStore:
    def __init__(self, auth: AuthGateway, tables_for: TablesFactory):
        self._auth = auth
        self._tables_for = tables_for
        self._state = IdentityState()
        self._queue = DeferredQueue()
        self._listeners: list[StateListener] = []
        self._subscription: Optional[AuthSubscription] = None

    def __enter__(self) -> "SessionStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def state(self) -> IdentityState:
        """Copy of the current state."""
        return self._state.snapshot()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def repositories(self) -> Repositories:
        """Repositories acting as the current session's user (anon if none)."""
        session = self._state.session
        return Repositories(self._tables_for(session.access_token if session else None))

    # Lifecycle

    def start(self, session: "Optional[AuthSession] | object" = _CURRENT) -> IdentityState:
        """Subscribe to auth changes and apply the initial session.

        Args:
            session: Session to start from. Defaults to the auth client's
                current session.

        Returns:
            Settled state after the initial resolution
        """
        if self._subscription is None:
            self._subscription = self._auth.on_auth_state_change(self.handle_auth_event)
        initial = self._auth.get_session() if session is _CURRENT else session
        self.handle_auth_event(INITIAL_SESSION, initial)  # type: ignore[arg-type]
        self.settle()
        return self.state

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def settle(self) -> IdentityState:
        """Run deferred resolutions and return the resulting state."""
        self._queue.drain()
        return self.state

    # Auth events

    def handle_auth_event(self, event: str, session: Optional[AuthSession]) -> None:
        """Record a session change; defer resolution of derived fields."""
        logger.debug(
            "Auth state changed",
            extra={"event": "session.auth_event", "auth_event": event},
        )
        if session is None:
            self._clear()
            return

        previous = self._state.user
        self._state.session = session
        self._state.user = session.user
        if previous is None or previous.id != session.user.id:
            self._state.profile = None
            self._state.membership = None
            self._state.organization = None
            self._state.error = None
            self._state.loading = True
        self._notify()

        user_id = session.user.id
        self._queue.defer(lambda: self._resolve(user_id))

    def _clear(self) -> None:
        self._state = IdentityState.anonymous()
        self._notify()

    def _resolve(self, user_id: str) -> None:
        current = self._state.user
        if current is None or current.id != user_id:
            logger.debug(
                "Stale resolution dropped",
                extra={"event": "session.resolve.stale", "user_id": user_id},
            )
            return

        resolver = IdentityResolver(self.repositories())
        try:
            resolution = resolver.resolve(user_id)
        except Exception as e:
            self._state.profile = None
            self._state.membership = None
            self._state.organization = None
            self._state.error = getattr(e, "detail", None) or str(e)
            logger.warning(
                "Identity resolution failed",
                extra={
                    "event": "session.resolve.failed",
                    "user_id": user_id,
                    "error": self._state.error,
                    "error_type": type(e).__name__,
                },
            )
        else:
            profile = resolution.profile
            if profile is None and current.is_verified:
                profile = self._create_missing_profile(current)
            self._state.profile = profile
            self._state.membership = resolution.membership
            self._state.organization = resolution.organization
            self._state.error = None
            logger.info(
                "Identity resolved",
                extra={
                    "event": "session.resolve.completed",
                    "user_id": user_id,
                    "org_id": resolution.organization.id if resolution.organization else None,
                    "has_profile": profile is not None,
                },
            )
        finally:
            self._state.loading = False
            self._notify()

    def _create_missing_profile(self, user: AuthUser) -> Optional[Profile]:
        """Insert the profile a pending-confirmation signup could not write.

        Signup runs without a session until the email is confirmed, so its
        profile insert is rejected; the first verified resolution retries it
        as the user. Failures are logged and leave the profile empty.
        """
        full_name = user.user_metadata.get("full_name") or ""
        try:
            profile = self.repositories().profiles.create(user.id, full_name, user.email or "")
        except Exception as e:
            logger.warning(
                "Profile backfill failed",
                extra={
                    "event": "session.profile.backfill_failed",
                    "user_id": user.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return None
        logger.info(
            "Profile backfilled",
            extra={"event": "session.profile.backfilled", "user_id": user.id},
        )
        return profile

    def _notify(self) -> None:
        snapshot = self._state.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # Operations

    def refresh_organization(self) -> IdentityState:
        """Re-read membership and organization for the current user.

        Session and profile are left as they are.
        """
        user = self._state.user
        if user is None:
            return self.state

        resolver = IdentityResolver(self.repositories())
        try:
            membership, organization = resolver.resolve_organization(user.id)
        except Exception as e:
            self._state.membership = None
            self._state.organization = None
            self._state.error = getattr(e, "detail", None) or str(e)
            logger.warning(
                "Organization refresh failed",
                extra={
                    "event": "session.refresh.failed",
                    "user_id": user.id,
                    "error": self._state.error,
                },
            )
        else:
            self._state.membership = membership
            self._state.organization = organization
            self._state.error = None
        self._notify()
        return self.state

    def set_organization(
        self, organization: Organization, membership: Optional[Membership] = None
    ) -> None:
        self._state.organization = organization
        if membership is not None:
            self._state.membership = membership
        self._state.error = None
        self._notify()

    def sign_up(
        self, email: str, password: str, display_name: str, redirect_to: str
    ) -> AuthUser:
        """Create an account, then insert its profile best-effort.

        Only the signup call itself can fail (AuthError). A failed profile
        insert is logged and otherwise ignored. The first verified resolution
        inserts the profile if it is still missing. When Supabase signs the new
        user in immediately (no email confirmation), the session is settled
        before returning.
        """
        user = self._auth.sign_up(email, password, display_name, redirect_to)
        logger.info(
            "Signup accepted",
            extra={
                "event": "auth.signup.success",
                "user_id": user.id,
                "email_confirmed": user.is_verified,
            },
        )

        try:
            self.repositories().profiles.create(user.id, display_name, email)
        except Exception as e:
            logger.warning(
                "Profile insert after signup failed",
                extra={
                    "event": "auth.signup.profile_failed",
                    "user_id": user.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
        self.settle()
        return user

    def sign_in(self, email: str, password: str) -> IdentityState:
        """Sign in and settle the resulting identity.

        Raises:
            AuthError: Backend rejected the credentials (message verbatim)
        """
        session = self._auth.sign_in(email, password)
        current = self._state.session
        if current is None or current.access_token != session.access_token:
            self.handle_auth_event(SIGNED_IN, session)
        return self.settle()

    def sign_out(self) -> IdentityState:
        session = self._state.session
        try:
            self._auth.sign_out(session.access_token if session else None)
        finally:
            self._clear()
        return self.state
