"""Realtime change feed for an organization's issues.

open_issue_feed() is the one scoped resource in the service: it opens a
Supabase realtime channel on `public.issues` filtered to one org and
always removes the channel when the block exits, whether the consumer
finished, failed or was cancelled.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from supabase import AsyncClient

from qresolve_api.supabase_client import create_realtime_client

logger = logging.getLogger(__name__)

RealtimeClientFactory = Callable[[str], Awaitable[AsyncClient]]


class IssueFeed:
    """Async iterator over change payloads delivered by one channel."""

    def __init__(self, queue: "asyncio.Queue[dict[str, Any]]"):
        self._queue = queue

    def __aiter__(self) -> "IssueFeed":
        return self

    async def __anext__(self) -> dict[str, Any]:
        return await self._queue.get()


def issue_channel_name(org_id: str) -> str:
    return f"dashboard-issues-{org_id}"


@asynccontextmanager
async def open_issue_feed(
    org_id: str,
    access_token: str,
    client_factory: RealtimeClientFactory = create_realtime_client,
) -> AsyncIterator[IssueFeed]:
    """Subscribe to INSERT/UPDATE/DELETE on the org's issues.

    Args:
        org_id: Organization whose issues are watched
        access_token: Caller's JWT (realtime honours RLS)
        client_factory: Builds the async Supabase client

    Yields:
        IssueFeed: changes in arrival order
    """
    client = await client_factory(access_token)
    queue: "asyncio.Queue[dict[str, Any]]" = asyncio.Queue()

    channel = client.channel(issue_channel_name(org_id))
    channel.on_postgres_changes(
        "*",
        schema="public",
        table="issues",
        filter=f"org_id=eq.{org_id}",
        callback=queue.put_nowait,
    )
    await channel.subscribe()
    logger.info(
        "Issue feed subscribed",
        extra={"event": "realtime.issue_feed.subscribed", "org_id": org_id},
    )

    try:
        yield IssueFeed(queue)
    finally:
        await client.remove_channel(channel)
        logger.info(
            "Issue feed released",
            extra={"event": "realtime.issue_feed.released", "org_id": org_id},
        )
