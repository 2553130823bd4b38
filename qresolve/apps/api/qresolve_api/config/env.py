"""Environment variable resolution utilities.

Canonical env names + fail-fast validation in production.
"""

import os
from typing import Optional

_DEV_APP_BASE_URL = "http://localhost:5173"

_DEV_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8000",
]


def get_qresolve_env() -> str:
    """Get QResolve environment name.

    Priority:
    1. QRESOLVE_ENV (canonical)
    2. APP_ENV (container platform compat)
    3. Default: "local"

    Returns:
        Environment name (lowercase)
    """
    return (os.getenv("QRESOLVE_ENV") or os.getenv("APP_ENV") or "local").lower()


def is_production_env() -> bool:
    """Determine if running in production."""
    return get_qresolve_env() in {"prod", "production"}


def get_app_base_url() -> str:
    """Get the public origin of the web client.

    Used for QR report URLs and for the signup confirmation redirect.
    Trailing slashes are stripped.

    Returns:
        Base URL (e.g., https://app.qresolve.app)

    Raises:
        ValueError: If APP_BASE_URL is missing in production
    """
    url = os.getenv("APP_BASE_URL")
    if not url:
        if is_production_env():
            raise ValueError(
                "APP_BASE_URL is required in production. "
                "Set it to the public origin of the web client (e.g., https://app.qresolve.app)."
            )
        return _DEV_APP_BASE_URL
    return url.rstrip("/")


def get_cors_allowed_origins() -> list[str]:
    """Get CORS allowlist.

    Credentials mode cannot use wildcard origins, so production requires an
    explicit comma-separated CORS_ALLOWED_ORIGINS. Outside production the
    localhost variants are used when unset.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if "*" in origins:
        raise ValueError("CORS_ALLOWED_ORIGINS must not contain '*' (credentials are allowed).")
    if origins:
        return origins
    if is_production_env():
        raise ValueError("CORS_ALLOWED_ORIGINS is required in production.")
    return list(_DEV_CORS_ORIGINS)


def get_log_level(default: str = "INFO") -> str:
    return os.getenv("LOG_LEVEL", default).upper()


def json_logs_enabled() -> bool:
    """JSON logging is on unless QRESOLVE_JSON_LOGS=false."""
    return os.getenv("QRESOLVE_JSON_LOGS", "true").lower() != "false"


def get_migrations_database_url(fallback: Optional[str] = None) -> Optional[str]:
    """Database URL for Alembic.

    Priority: DATABASE_URL_MIGRATIONS > DATABASE_URL > fallback (alembic.ini)
    """
    return os.getenv("DATABASE_URL_MIGRATIONS") or os.getenv("DATABASE_URL") or fallback
