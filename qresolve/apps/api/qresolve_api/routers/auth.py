"""Auth endpoints.

Endpoints:
- POST /v1/auth/signup: Email signup with confirmation email
- POST /v1/auth/login: Email login (returns JWT session + next route)
- POST /v1/auth/logout: Revoke the caller's session
- GET /v1/auth/confirmed: Email confirmation landing page (HTML)

SECURITY:
- The confirmation redirect is FORCED to APP_BASE_URL (no user-controlled
  redirects)
- Passwords never logged
- Supabase rejections are returned verbatim as 401 problems
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPAuthorizationCredentials

from qresolve_api.auth.session_auth import session_security
from qresolve_api.backend import Backend, get_backend
from qresolve_api.config.env import get_app_base_url
from qresolve_api.entities import AuthSession
from qresolve_api.errors import AuthError, AuthenticationRequired
from qresolve_api.routers.session import guard_response
from qresolve_api.schemas import AuthResponse, LoginRequest, SignupRequest
from qresolve_api.session.guard import evaluate_route_guard
from qresolve_api.session.store import SessionStore

router = APIRouter(prefix="/v1/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _get_redirect_url() -> str:
    """Confirmation link target: the web client's root."""
    return f"{get_app_base_url()}/"


@router.post("/signup", status_code=status.HTTP_202_ACCEPTED, response_model=AuthResponse)
def signup(request: SignupRequest, backend: Backend = Depends(get_backend)) -> AuthResponse:
    """Register new user with email/password.

    Flow:
    1. Supabase creates the user (email_confirmed=false)
    2. Profile row inserted best-effort (failure only logged)
    3. Supabase sends the confirmation email, linking to APP_BASE_URL
    4. Until confirmed, the route guard answers UNVERIFIED

    Returns:
        202 Accepted with message to check email

    Raises:
        AuthError 401: Supabase rejected the signup (message verbatim)
    """
    logger.info("auth.signup.attempt", extra={"email": request.email})

    with SessionStore(backend.auth(), backend.tables) as store:
        store.start()
        user = store.sign_up(
            request.email, request.password, request.full_name, _get_redirect_url()
        )
        state = store.state

    # No session until the email is confirmed (unless Supabase auto-confirms)
    return AuthResponse(
        user_id=user.id,
        email=user.email or request.email,
        email_confirmed=user.is_verified,
        access_token=state.session.access_token if state.session else None,
        refresh_token=state.session.refresh_token if state.session else None,
        guard=guard_response(evaluate_route_guard(state)),
        message="Check your email to confirm your account",
    )


@router.post("/login", status_code=status.HTTP_200_OK, response_model=AuthResponse)
def login(request: LoginRequest, backend: Backend = Depends(get_backend)) -> AuthResponse:
    """Login with email/password.

    Returns:
        200 OK with access_token, refresh_token and the route guard
        decision for the signed-in identity (where the client goes next)

    Raises:
        AuthError 401: Invalid credentials (Supabase message verbatim)
    """
    logger.info("auth.login.attempt", extra={"email": request.email})

    with SessionStore(backend.auth(), backend.tables) as store:
        store.start()
        state = store.sign_in(request.email, request.password)

    if state.user is None or state.session is None:
        raise AuthError("Sign-in returned no session.")
    decision = evaluate_route_guard(state)
    logger.info(
        "auth.login.success",
        extra={"user_id": state.user.id, "guard_state": decision.state.value},
    )
    return AuthResponse(
        user_id=state.user.id,
        email=state.user.email or request.email,
        email_confirmed=state.user.is_verified,
        access_token=state.session.access_token,
        refresh_token=state.session.refresh_token,
        guard=guard_response(decision),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(session_security),
    backend: Backend = Depends(get_backend),
) -> Response:
    """Sign out the bearer token's session.

    Raises:
        AuthenticationRequired 401: Missing or invalid token
    """
    if not credentials:
        raise AuthenticationRequired()

    auth = backend.auth()
    user = auth.get_user(credentials.credentials)
    if user is None:
        raise AuthenticationRequired("Invalid or expired session token. Please log in again.")

    with SessionStore(auth, backend.tables) as store:
        store.start(AuthSession(access_token=credentials.credentials, user=user))
        store.sign_out()
    logger.info("auth.logout.success", extra={"user_id": user.id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


_CONFIRMED_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Email Confirmed - QResolve</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Arial, sans-serif;
            background: #f5f7fa;
            display: flex;
            justify-content: center;
            align-items: center;
            height: 100vh;
            margin: 0;
        }
        .card {
            background: white;
            border-radius: 8px;
            box-shadow: 0 4px 16px rgba(0, 0, 0, 0.08);
            padding: 40px;
            max-width: 440px;
            text-align: center;
        }
        h1 { color: #1f2937; font-size: 24px; }
        p { color: #4b5563; line-height: 1.6; }
    </style>
</head>
<body>
    <div class="card">
        <h1>Email Confirmed</h1>
        <p>Your email address has been confirmed.</p>
        <p>Return to QResolve and log in to set up your organization.</p>
    </div>
</body>
</html>
"""


@router.get("/confirmed", response_class=HTMLResponse)
def email_confirmed() -> HTMLResponse:
    """Email confirmation landing page.

    Static page; query string parameters (token, etc.) are NOT logged and
    nothing redirects.
    """
    logger.info("auth.email_confirmed.view")
    return HTMLResponse(content=_CONFIRMED_HTML, status_code=200)
