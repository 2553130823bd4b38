"""Database engine builder for migrations.

The API talks to Supabase over HTTPS only; this engine exists for Alembic.

Policy:
- NullPool (Supabase pooler does the pooling)
- pool_pre_ping=True
- Bare postgresql:// (or postgres://) URLs use the psycopg2 driver
- Supabase host -> sslmode=require unless the URL sets its own sslmode
- Production + Supabase host -> sslmode in the URL must not be disable/allow/prefer
"""

import logging
import re
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from sqlalchemy import Engine, NullPool, create_engine

from qresolve_api.config.env import get_migrations_database_url, is_production_env

logger = logging.getLogger(__name__)

UNSAFE_SSL_MODES = frozenset({"disable", "allow", "prefer"})
PSYCOPG2_SCHEME = "postgresql+psycopg2"


def is_supabase_host(url: str) -> bool:
    """True for *.supabase.co and *.pooler.supabase.com hosts."""
    host = (urlparse(url).hostname or "").lower()
    return host.endswith(".supabase.co") or host.endswith(".pooler.supabase.com")


def get_sslmode_from_url(url: str) -> Optional[str]:
    modes = parse_qs(urlparse(url).query).get("sslmode", [])
    return modes[0] if modes else None


def with_psycopg2_driver(url: str) -> str:
    """Pin a driverless Postgres URL to psycopg2; explicit drivers are kept."""
    scheme, sep, rest = url.partition("://")
    if sep and scheme in ("postgresql", "postgres"):
        return f"{PSYCOPG2_SCHEME}://{rest}"
    return url


def mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:/@]+):([^@]+)@", r"://\1:***@", url)


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Build the migrations engine.

    Args:
        database_url: Connection URL. Defaults to DATABASE_URL_MIGRATIONS /
            DATABASE_URL.

    Raises:
        ValueError: No URL configured
        RuntimeError: Unsafe sslmode for Supabase in production
    """
    url = database_url or get_migrations_database_url()
    if not url:
        raise ValueError(
            "DATABASE_URL is required. "
            "Pass as argument or set DATABASE_URL_MIGRATIONS / DATABASE_URL."
        )

    connect_args: dict[str, Any] = {"application_name": "qresolve-migrations"}
    if is_supabase_host(url):
        sslmode = get_sslmode_from_url(url)
        if sslmode in UNSAFE_SSL_MODES and is_production_env():
            raise RuntimeError(
                f"PRODUCTION GUARDRAIL: Supabase connection requires TLS, got sslmode={sslmode}."
            )
        if sslmode is None:
            connect_args["sslmode"] = "require"

    engine = create_engine(
        with_psycopg2_driver(url), poolclass=NullPool, pool_pre_ping=True, connect_args=connect_args
    )
    logger.debug("Migrations engine created: url=%s", mask_password(url))
    return engine
