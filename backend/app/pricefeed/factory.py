"""Factory for creating the price feed from environment configuration."""

from __future__ import annotations

import logging
import os

from .aggregator import Aggregator, PollingTransport
from .catalog import SOURCES
from .channel import LiveUpdateChannel
from .exceptions import ConfigError
from .feed import PriceFeed
from .interface import DEFAULT_FETCH_TIMEOUT, LiveTransport, SourceClient
from .simulator import CommodityPriceSimulator, SimulatedSourceClient, SimulatedTransport

logger = logging.getLogger(__name__)


def _env_number(name: str, default: float, kind: type = float, positive: bool = False) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a {kind.__name__}, got {raw!r}", {"field": name}) from None
    if positive and value <= 0:
        raise ConfigError(f"{name} must be greater than zero, got {raw!r}", {"field": name})
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}", {"field": name})
    return value


def create_price_feed() -> PriceFeed:
    """Create the price feed based on environment variables.

    - COMMODITY_API_BASE_URL set and non-empty -> HttpSourceClient against
      the provider endpoints under that base URL; live updates re-poll the
      same providers (PollingTransport)
    - Otherwise -> SimulatedSourceClient and SimulatedTransport sharing one
      GBM simulator

    The two modes never mix, so simulated prices cannot overwrite real quotes.

    Tuning:
        PRICE_FEED_TIMEOUT              per-source fetch timeout (s), default 5, > 0
        PRICE_FEED_PUSH_INTERVAL        live batch cadence (s), default 5, > 0
        PRICE_FEED_RECONNECT_ATTEMPTS   default 5, >= 1
        PRICE_FEED_RECONNECT_DELAY      seconds between attempts, default 3

    Returns an unstarted feed. Caller must await feed.start().
    """
    timeout = _env_number("PRICE_FEED_TIMEOUT", DEFAULT_FETCH_TIMEOUT, positive=True)
    interval = _env_number("PRICE_FEED_PUSH_INTERVAL", 5.0, positive=True)
    attempts = int(_env_number("PRICE_FEED_RECONNECT_ATTEMPTS", 5, int, positive=True))
    delay = _env_number("PRICE_FEED_RECONNECT_DELAY", 3.0)

    base_url = os.environ.get("COMMODITY_API_BASE_URL", "").strip()

    client: SourceClient
    transport: LiveTransport
    if base_url:
        from .client import HttpSourceClient

        logger.info("Price sources: HTTP providers at %s", base_url)
        client = HttpSourceClient(base_url=base_url, sources=SOURCES, timeout=timeout)
        transport = PollingTransport(Aggregator(client, SOURCES), interval=interval)
    else:
        logger.info("Price sources: GBM simulator")
        simulator = CommodityPriceSimulator()
        client = SimulatedSourceClient(simulator, sources=SOURCES, timeout=timeout)
        transport = SimulatedTransport(simulator, interval=interval)

    channel = LiveUpdateChannel(transport, max_attempts=attempts, reconnect_delay=delay)
    return PriceFeed(Aggregator(client, SOURCES), channel)
