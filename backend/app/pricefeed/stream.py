"""HTTP endpoints: table snapshot, manual refresh, CSV export, alert triggers and SSE stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import Response, StreamingResponse

from .export import to_csv
from .feed import PriceFeed

logger = logging.getLogger(__name__)


def create_feed_router(feed: PriceFeed, stream_interval: float = 0.5) -> APIRouter:
    """Create the price feed router with a reference to the feed.

    This factory pattern lets us inject the PriceFeed without globals.
    """
    router = APIRouter(prefix="/api", tags=["prices"])

    @router.get("/prices")
    async def get_prices() -> dict:
        """Current table snapshot."""
        return {
            "version": feed.table.version,
            "degraded": feed.channel_failed,
            "records": [record.to_dict() for record in feed.snapshot()],
        }

    @router.post("/prices/refresh")
    async def refresh_prices() -> dict:
        """Manual refresh. Failed sources are reported, not raised."""
        merged = await feed.refresh()
        return {
            "merged": merged,
            "failed_sources": [error.source_key for error in feed.last_errors],
            "version": feed.table.version,
        }

    @router.get("/prices/export.csv")
    async def export_prices() -> Response:
        return Response(
            content=to_csv(feed.snapshot()),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="commodity_data.csv"'},
        )

    @router.get("/alerts/triggers")
    async def alert_triggers() -> dict:
        """Alert triggers raised since the previous call. Reading clears them."""
        return {"triggers": [trigger.to_dict() for trigger in feed.drain_triggers()]}

    @router.get("/stream/prices")
    async def stream_prices(request: Request) -> StreamingResponse:
        """SSE endpoint for live table updates.

        Pushes the whole snapshot whenever the table version changes:

            data: [{"id": "...", "name": "Corn", "price": 4.25, ...}, ...]

        Once live updates have failed for good, a single
        `event: degraded` message is sent so the view can flag stale data.
        """
        return StreamingResponse(
            _generate_events(feed, request, stream_interval),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    feed: PriceFeed,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted snapshot events.

    Stops when the client disconnects (detected via request.is_disconnected()).
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_version = -1
    degraded_sent = False
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = feed.table.version
            if current_version != last_version:
                last_version = current_version
                records = feed.snapshot()
                if records:
                    payload = json.dumps([record.to_dict() for record in records])
                    yield f"data: {payload}\n\n"

            if feed.channel_failed and not degraded_sent:
                degraded_sent = True
                failure = json.dumps({"detail": str(feed.last_failure)})
                yield f"event: degraded\ndata: {failure}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
