"""Log sanitizer for QResolve.

What leaks into logs here: Supabase access/refresh tokens (bearer headers,
the live dashboard's ?access_token=, JWTs echoed in auth errors), account
emails, and reporter contact details that public reports append to issue
descriptions.

String handling is gated by size:
 1. > MAX_STR_LOG        -> replaced by length + sha256 prefix, no regex
 2. > MAX_STR_FOR_REGEX  -> credential prefix check only
 3. otherwise            -> every pattern in _PATTERNS

Patterns match runs of non-whitespace and are compiled at import.
"""

import hashlib
import re
import traceback
from typing import Any

MAX_STR_LOG: int = 2048
MAX_STR_FOR_REGEX: int = 512
MAX_DEPTH: int = 6

REDACTED = "[REDACTED]"

# Field names compared lower-cased
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    # credentials
    "authorization", "token", "jwt", "access_token", "refresh_token",
    "password", "apikey", "api_key", "secret",
    # account and reporter PII
    "email", "reporter_email", "reporter_name", "contact", "phone",
})

_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?:Bearer|Basic) \S+"),
    re.compile(r"(?:access_token|refresh_token|apikey)=[^&\s]+"),
    re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+"),
    re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+"),
]

_CREDENTIAL_PREFIXES = ("Bearer ", "Basic ")


def is_sensitive_key(key: object) -> bool:
    return isinstance(key, str) and key.lower() in _SENSITIVE_KEYS


def sanitize_str(s: str) -> str:
    """Return s with tokens and email addresses replaced by REDACTED."""
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    n = len(s)
    if n > MAX_STR_LOG:
        digest = hashlib.sha256(s.encode("utf-8", errors="replace")).hexdigest()[:16]
        return f"[TRUNCATED len={n} sha256={digest}]"

    if n > MAX_STR_FOR_REGEX:
        return REDACTED if s.startswith(_CREDENTIAL_PREFIXES) else s

    for pattern in _PATTERNS:
        s = pattern.sub(REDACTED, s)
    return s


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Sanitize a log extra value, recursing into dicts, lists and tuples.

    Values under a sensitive key are replaced whole. Nesting deeper than
    MAX_DEPTH collapses to "[DEPTH_LIMIT]".
    """
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"
    if isinstance(obj, dict):
        return {
            key: REDACTED if is_sensitive_key(key) else sanitize_obj(value, depth + 1)
            for key, value in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]
    if isinstance(obj, str):
        return sanitize_str(obj)
    return obj


def sanitize_field(key: str, value: Any) -> Any:
    if is_sensitive_key(key):
        return REDACTED
    return sanitize_obj(value)


def sanitize_exc(exc_info: tuple) -> str:
    """Format exc_info as a sanitized traceback (locals are never captured)."""
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        formatted = "".join(
            traceback.TracebackException.from_exception(value, capture_locals=False).format()
        )
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"
    return sanitize_str(formatted)
