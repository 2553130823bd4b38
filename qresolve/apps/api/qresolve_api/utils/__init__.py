"""Utility functions and helpers."""

from qresolve_api.utils.logging import JSONFormatter, configure_json_logging
from qresolve_api.utils.sanitize import sanitize_exc, sanitize_obj, sanitize_str

__all__ = [
    "JSONFormatter",
    "configure_json_logging",
    "sanitize_exc",
    "sanitize_obj",
    "sanitize_str",
]
