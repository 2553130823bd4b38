"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from qresolve_api import __version__
from qresolve_api.backend import Backend, get_backend
from qresolve_api.db.repositories import ORGANIZATIONS

router = APIRouter()
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    services: dict[str, str]


def check_supabase(backend: Backend) -> str:
    """Check Supabase reachability with an anonymous count.

    Returns:
        str: "up" if reachable, error message otherwise
    """
    try:
        backend.tables().count(ORGANIZATIONS)
        return "up"
    except Exception as e:
        logger.error(f"Supabase health check failed: {e}")
        return f"down: {str(e)[:50]}"


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness. Always 200, no dependency calls."""
    return HealthResponse(status="healthy", version=__version__, services={"api": "up"})


@router.get("/readyz", response_model=HealthResponse)
def readiness_check(response: Response, backend: Backend = Depends(get_backend)) -> HealthResponse:
    """Readiness. Returns 503 if Supabase is unreachable."""
    services = {"api": "up", "supabase": check_supabase(backend)}

    if any("down" in svc_status for svc_status in services.values()):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", version=__version__, services=services)

    return HealthResponse(status="ready", version=__version__, services=services)
