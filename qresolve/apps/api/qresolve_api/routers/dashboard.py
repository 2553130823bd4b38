"""Dashboard endpoints.

- GET /v1/dashboard: organization stats snapshot
- WS /v1/dashboard/live?access_token=<jwt>: stats pushed on every issue change

The socket authenticates through the query string (browsers cannot set
headers on WebSocket requests). Close codes before accept:
- 4401: no valid session
- 4403: session valid but not admitted (unverified, no organization, ...)
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketState

from qresolve_api.analytics.stats import build_dashboard_stats
from qresolve_api.auth.session_auth import (
    TenantContext,
    admit,
    get_tenant_repositories,
    open_session_store,
    require_admitted,
)
from qresolve_api.backend import Backend, get_backend
from qresolve_api.db.repositories import Repositories
from qresolve_api.realtime.issue_feed import IssueFeed
from qresolve_api.schemas import DashboardStatsResponse
from qresolve_api.session.guard import GuardState, evaluate_route_guard
from qresolve_api.session.state import IdentityState

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])
logger = logging.getLogger(__name__)

WS_CLOSE_UNAUTHENTICATED = 4401
WS_CLOSE_FORBIDDEN = 4403
WS_CLOSE_INTERNAL_ERROR = 1011


def dashboard_stats(repos: Repositories, tenant: TenantContext) -> DashboardStatsResponse:
    stats = build_dashboard_stats(repos, tenant.org_id)
    return DashboardStatsResponse(
        organization_name=tenant.org_name,
        total_assets=stats.total_assets,
        active_issues=stats.active_issues,
        critical_alerts=stats.critical_alerts,
        resolved_this_week=stats.resolved_this_week,
        recent_issues=stats.recent_issues,
    )


@router.get("", response_model=DashboardStatsResponse)
def get_dashboard(
    tenant: TenantContext = Depends(require_admitted),
    repos: Repositories = Depends(get_tenant_repositories),
) -> DashboardStatsResponse:
    return dashboard_stats(repos, tenant)


def _resolve_state(backend: Backend, access_token: Optional[str]) -> IdentityState:
    with open_session_store(backend, access_token) as store:
        return store.state


async def _send_stats(websocket: WebSocket, repos: Repositories, tenant: TenantContext) -> None:
    response = await run_in_threadpool(dashboard_stats, repos, tenant)
    await websocket.send_json(response.model_dump(mode="json"))


async def _pump(
    websocket: WebSocket, feed: IssueFeed, repos: Repositories, tenant: TenantContext
) -> None:
    async for change in feed:
        logger.debug(
            "Issue change received",
            extra={"event": "dashboard.live.change", "change_type": change.get("eventType")},
        )
        await _send_stats(websocket, repos, tenant)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/live")
async def dashboard_live(
    websocket: WebSocket,
    access_token: str = Query(""),
    backend: Backend = Depends(get_backend),
) -> None:
    state = await run_in_threadpool(_resolve_state, backend, access_token or None)
    decision = evaluate_route_guard(state)
    if not decision.admitted:
        code = (
            WS_CLOSE_UNAUTHENTICATED
            if decision.state is GuardState.ANONYMOUS
            else WS_CLOSE_FORBIDDEN
        )
        logger.info(
            "Live dashboard rejected",
            extra={"event": "dashboard.live.rejected", "guard_state": decision.state.value},
        )
        await websocket.close(code=code, reason=decision.state.value)
        return

    tenant = admit(state)
    repos = Repositories(backend.tables(tenant.access_token))
    await websocket.accept()

    close_code: Optional[int] = None
    async with backend.issue_feed(tenant.org_id, tenant.access_token) as feed:
        await _send_stats(websocket, repos, tenant)

        pump = asyncio.create_task(_pump(websocket, feed, repos, tenant))
        watcher = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            done, _ = await asyncio.wait({pump, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (pump, watcher):
                task.cancel()
            await asyncio.gather(pump, watcher, return_exceptions=True)

        if pump in done:
            error = pump.exception()
            if error is not None:
                logger.error(
                    "Live dashboard feed failed",
                    extra={
                        "event": "dashboard.live.failed",
                        "org_id": tenant.org_id,
                        "error": str(error),
                        "error_type": type(error).__name__,
                    },
                )
                close_code = WS_CLOSE_INTERNAL_ERROR
            else:
                close_code = 1000

    if (
        close_code is not None
        and websocket.application_state == WebSocketState.CONNECTED
        and websocket.client_state == WebSocketState.CONNECTED
    ):
        await websocket.close(code=close_code)
