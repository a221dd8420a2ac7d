"""FastAPI application factory.

Run with:
    uvicorn app.main:create_app --factory
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.pricefeed import PriceFeed, PriceFeedError, create_feed_router, create_price_feed
from app.pricefeed.exceptions import ConfigError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the price feed on startup, stop it on shutdown."""
    feed: PriceFeed = app.state.feed
    await feed.start()

    yield

    await feed.stop()


def create_app(feed: PriceFeed | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if feed is None:
        feed = create_price_feed()

    app = FastAPI(
        title="Commodity Price Feed",
        description="Aggregated commodity quotes with live updates",
        lifespan=lifespan,
    )
    app.state.feed = feed
    app.include_router(create_feed_router(feed))

    @app.exception_handler(PriceFeedError)
    async def price_feed_exception_handler(request: Request, exc: PriceFeedError):
        status = 400 if isinstance(exc, ConfigError) else 500
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/api/health")
    async def health() -> dict:
        return {
            "status": "degraded" if feed.channel_failed else "ok",
            "channel": feed.channel.state.value,
            "records": len(feed.table),
        }

    return app
