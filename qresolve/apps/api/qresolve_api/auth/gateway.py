"""Supabase Auth gateway.

Wraps the auth half of a supabase-py Client and speaks in AuthUser /
AuthSession. Every rejection from Supabase Auth becomes AuthError with the
backend's message unchanged, so clients can show it as-is.
"""

import logging
from typing import Any, Callable, Optional, Protocol

from supabase import Client

from qresolve_api.entities import AuthSession, AuthUser
from qresolve_api.errors import AuthError, backend_message

logger = logging.getLogger(__name__)

AuthEventCallback = Callable[[str, Optional[AuthSession]], None]


class AuthSubscription(Protocol):
    def unsubscribe(self) -> None: ...


class AuthGateway(Protocol):
    """Auth operations the session layer depends on."""

    def get_user(self, access_token: str) -> Optional[AuthUser]: ...

    def get_session(self) -> Optional[AuthSession]: ...

    def sign_up(
        self, email: str, password: str, full_name: str, redirect_to: str
    ) -> AuthUser: ...

    def sign_in(self, email: str, password: str) -> AuthSession: ...

    def sign_out(self, access_token: Optional[str] = None) -> None: ...

    def on_auth_state_change(self, callback: AuthEventCallback) -> AuthSubscription: ...


def to_auth_user(user: Any) -> AuthUser:
    """Convert a supabase_auth User model into AuthUser."""
    return AuthUser(
        id=user.id,
        email=user.email,
        email_confirmed_at=user.email_confirmed_at,
        user_metadata=dict(user.user_metadata or {}),
    )


def to_auth_session(session: Any) -> AuthSession:
    """Convert a supabase_auth Session model into AuthSession."""
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
        user=to_auth_user(session.user),
    )


class SupabaseAuthGateway:
    """AuthGateway over one supabase-py Client.

    The client keeps the signed-in session in memory, so one gateway must
    serve one sign-in flow only (see supabase_client.create_auth_client).
    """

    def __init__(self, client: Client):
        self._client = client

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        """Validate a JWT and return its user, or None if invalid or expired."""
        try:
            response = self._client.auth.get_user(access_token)
        except Exception as e:
            logger.info(
                "Bearer token rejected",
                extra={
                    "event": "auth.token.rejected",
                    "error": backend_message(e),
                    "error_type": type(e).__name__,
                },
            )
            return None
        if not response or not response.user:
            return None
        return to_auth_user(response.user)

    def get_session(self) -> Optional[AuthSession]:
        session = self._client.auth.get_session()
        return to_auth_session(session) if session else None

    def sign_up(self, email: str, password: str, full_name: str, redirect_to: str) -> AuthUser:
        try:
            response = self._client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {
                        "email_redirect_to": redirect_to,
                        "data": {"full_name": full_name},
                    },
                }
            )
        except Exception as e:
            raise AuthError(backend_message(e)) from e
        if not response.user:
            raise AuthError("Signup failed: no user returned")
        return to_auth_user(response.user)

    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthError(backend_message(e)) from e
        if not response.session:
            raise AuthError("Invalid login credentials")
        return to_auth_session(response.session)

    def sign_out(self, access_token: Optional[str] = None) -> None:
        """Revoke the session.

        A gateway adopted from a bearer token holds no session of its own, so
        the token is revoked through the logout endpoint directly.
        """
        try:
            if access_token and self._client.auth.get_session() is None:
                self._client.auth.admin.sign_out(access_token)
            else:
                self._client.auth.sign_out()
        except Exception as e:
            raise AuthError(backend_message(e)) from e

    def on_auth_state_change(self, callback: AuthEventCallback) -> AuthSubscription:
        def _forward(event: Any, session: Any) -> None:
            callback(str(event), to_auth_session(session) if session else None)

        return self._client.auth.on_auth_state_change(_forward)
