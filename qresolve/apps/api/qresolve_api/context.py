"""Request context management for observability.

Context variables for request tracking across async boundaries.
The JSON log formatter reads these so every log line carries the
request, user and organization it belongs to.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Authenticated user (empty for anonymous requests)
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Resolved organization (tenant) of the authenticated user
org_id_var: ContextVar[str] = ContextVar("org_id", default="")
