"""Supabase client configuration.

SECURITY NOTICE:
- Only the publishable (anon) key is used. Every table call either runs as
  anon (public reporting) or carries the caller's own JWT, so row-level
  security is always in force. The service never holds a secret key.

KEY NAMING TRANSITION:
- New Supabase UI (2024+): SB_PUBLISHABLE_KEY
- Legacy (pre-2024): SUPABASE_ANON_KEY
- Backward compatibility: Falls back to legacy name if new name not set
"""

import logging
import os
from functools import lru_cache

from supabase import AsyncClient, Client, acreate_client, create_client

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase_url() -> str:
    """Get Supabase project URL from environment.

    Returns:
        str: Supabase URL (https://[project_ref].supabase.co)

    Raises:
        RuntimeError: If SUPABASE_URL not set
    """
    url = os.getenv("SUPABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_URL environment variable not set.")
    return url


@lru_cache(maxsize=1)
def get_supabase_api_key() -> str:
    """Get Supabase publishable (anon) key from environment.

    Priority:
    1. SB_PUBLISHABLE_KEY (new standard, Supabase UI 2024+)
    2. SUPABASE_ANON_KEY (legacy, backward compatibility)

    Raises:
        RuntimeError: If neither key is set
    """
    key = os.getenv("SB_PUBLISHABLE_KEY")
    if key:
        return key

    key = os.getenv("SUPABASE_ANON_KEY")
    if key:
        logger.info(
            "Using legacy SUPABASE_ANON_KEY (consider migrating to SB_PUBLISHABLE_KEY)"
        )
        return key

    raise RuntimeError(
        "Neither SB_PUBLISHABLE_KEY nor SUPABASE_ANON_KEY environment variable is set. "
        "Set SB_PUBLISHABLE_KEY (recommended) or SUPABASE_ANON_KEY (legacy)."
    )


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Get the shared anon Supabase client.

    Used for anonymous table calls and for validating bearer tokens
    (auth.get_user(jwt) does not touch the client's own session).
    """
    url = get_supabase_url()
    api_key = get_supabase_api_key()

    # Log initialization (without exposing keys)
    logger.info(
        "Initializing Supabase client",
        extra={"supabase_url": url, "key_type": "publishable"},
    )

    return create_client(url, api_key)


def create_auth_client() -> Client:
    """Create a fresh client for one sign-in/sign-up flow.

    The auth module keeps the signed-in session on the client instance, so
    a shared client would leak one user's session into the next request.
    """
    return create_client(get_supabase_url(), get_supabase_api_key())


def create_user_client(access_token: str) -> Client:
    """Create a client whose table calls carry the user's JWT (RLS as that user)."""
    client = create_client(get_supabase_url(), get_supabase_api_key())
    client.postgrest.auth(access_token)
    return client


async def create_realtime_client(access_token: str) -> AsyncClient:
    """Create an async client for realtime channels, authorized as the user."""
    client = await acreate_client(get_supabase_url(), get_supabase_api_key())
    await client.realtime.set_auth(access_token)
    return client
