"""QResolve API - FastAPI Application Entry Point."""

import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from qresolve_api import __version__
from qresolve_api.config.env import (
    get_cors_allowed_origins,
    get_log_level,
    json_logs_enabled,
)
from qresolve_api.context import org_id_var, request_id_var, user_id_var
from qresolve_api.errors import (
    AuthenticationRequired,
    PartialBootstrapFailure,
    QResolveError,
    SessionLoading,
)
from qresolve_api.middleware import LoggingRedactionMiddleware, get_safe_query
from qresolve_api.routers import (
    assets,
    auth,
    dashboard,
    health,
    issues,
    onboarding,
    report,
    reports,
    session,
    settings,
)
from qresolve_api.schemas import ProblemDetail
from qresolve_api.utils import configure_json_logging

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://api.qresolve.app/problems"


def _instance() -> str:
    """Opaque problem instance from the request id."""
    request_id = request_id_var.get()
    return f"urn:qresolve:trace:{request_id or uuid.uuid4()}"


def _problem_response(problem: ProblemDetail, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers or {},
    )


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        422: "Unprocessable Entity",
        500: "Internal Server Error",
        502: "Bad Gateway",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


async def qresolve_error_handler(request: Request, exc: QResolveError) -> JSONResponse:
    """Render application errors as RFC 9457 Problem Details.

    Extensions (redirect_to, guard_state, retry) are copied from the error.
    401 responses carry WWW-Authenticate; 503 (session loading) carries
    Retry-After.
    """
    problem = ProblemDetail(
        type=exc.error_type,
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        instance=_instance(),
        **exc.extensions,
    )

    headers: dict[str, str] = {}
    if isinstance(exc, AuthenticationRequired):
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, SessionLoading):
        headers["Retry-After"] = "1"

    if isinstance(exc, PartialBootstrapFailure):
        logger.error(
            "Organization bootstrap left orphaned rows",
            extra={
                "event": "bootstrap.partial_failure",
                "step": exc.step,
                "orphaned": exc.orphaned,
            },
        )
    elif exc.status_code >= 500:
        logger.error(
            f"Request failed: {exc.detail}",
            extra={"event": "http.request.failed", "error_type": type(exc).__name__},
        )

    return _problem_response(problem, headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with RFC 9457 Problem Details format.

    Returns application/problem+json with top-level RFC 9457 fields.
    No {"detail": ...} wrapper.
    """
    detail_value = exc.detail if exc.detail is not None else _get_title_for_status(exc.status_code)
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/http-{exc.status_code}",
        title=_get_title_for_status(exc.status_code),
        status=exc.status_code,
        detail=detail_value,
        instance=_instance(),
    )
    return _problem_response(problem, dict(exc.headers or {}))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with RFC 9457 Problem Details format.

    Returns 422 with the first error as detail and all errors (without
    input values) under "errors".
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/validation-error",
        title="Request Validation Failed",
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=f"Invalid field '{field}': {msg}",
        instance=_instance(),
        errors=[
            {"loc": [str(loc) for loc in e.get("loc", [])], "msg": e.get("msg"), "type": e.get("type")}
            for e in errors
        ],
    )
    return _problem_response(problem)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with RFC 9457 Problem Details format."""
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_instance(),
    )
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _problem_response(problem)


# ============================================================================
# Application Factory
# ============================================================================


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Middleware order (outermost first): request id, completion logging,
    logging redaction, CORS.
    """
    if json_logs_enabled():
        configure_json_logging(log_level=get_log_level())
        logger.info("Structured JSON logging enabled")

    new_app = FastAPI(
        title="QResolve API",
        description="Multi-tenant asset and issue tracking with QR-code public reporting.",
        version=__version__,
        docs_url="/api-docs",
        redoc_url="/redoc",
    )

    # Credentials mode cannot use wildcard origins (enforced in config.env)
    new_app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    new_app.add_middleware(LoggingRedactionMiddleware)

    @new_app.middleware("http")
    async def http_completion_logging_middleware(request: Request, call_next):
        """Log every HTTP request completion.

        - Every HTTP request emits "http.request.completed"
        - Fields: method, path, query (redacted), status_code, duration_ms
        - Logs even on exceptions (status_code=500)
        - Clears per-request contextvars at start and end
        """
        user_id_var.set("")
        org_id_var.set("")

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "http.request.completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "query": get_safe_query(request),
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            user_id_var.set("")
            org_id_var.set("")

    @new_app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Generate and propagate request_id for observability.

        - Accepts X-Request-ID header from client (optional)
        - Generates new UUID if not provided
        - Returns X-Request-ID in response headers

        Registered LAST so it is the outermost middleware and the context
        variable is set before inner middlewares run.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    new_app.add_exception_handler(QResolveError, qresolve_error_handler)
    new_app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    new_app.add_exception_handler(RequestValidationError, validation_exception_handler)
    new_app.add_exception_handler(Exception, general_exception_handler)

    new_app.include_router(health.router, tags=["health"])
    new_app.include_router(session.router)
    new_app.include_router(auth.router)
    new_app.include_router(onboarding.router)
    new_app.include_router(report.router)
    new_app.include_router(assets.router)
    new_app.include_router(issues.router)
    new_app.include_router(dashboard.router)
    new_app.include_router(reports.router)
    new_app.include_router(settings.router)

    @new_app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "service": "QResolve API",
            "version": __version__,
            "status": "running",
            "docs": "/api-docs",
        }

    return new_app


app = create_app()
