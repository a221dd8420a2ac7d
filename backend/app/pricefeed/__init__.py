"""Commodity price feed subsystem.

Public API:
    PriceRecord         - Immutable, normalized price observation
    SourceDescriptor    - A configured price provider
    SourceClient        - Abstract interface for provider clients
    Aggregator          - Concurrent settle-all refresh across sources
    PollingTransport    - Live transport that re-polls the providers on a timer
    LiveUpdateChannel   - Reconnecting push channel shared by subscribers
    TableState / merge  - Keyed table of current records and its merge rule
    PriceFeed           - Owner service wiring refresh and live updates
    create_price_feed   - Factory that selects HTTP providers or the simulator
    create_feed_router  - FastAPI router factory for snapshot/refresh/SSE
"""

from .aggregator import Aggregator, PollingTransport
from .channel import ChannelState, LiveUpdateChannel
from .exceptions import ChannelTerminalFailure, FetchError, MalformedRecord, PriceFeedError
from .factory import create_price_feed
from .feed import PriceFeed
from .interface import LiveTransport, SourceClient
from .models import FetchResult, PriceRecord, SourceDescriptor
from .stream import create_feed_router
from .table import TableState, merge

__all__ = [
    "Aggregator",
    "ChannelState",
    "ChannelTerminalFailure",
    "FetchError",
    "FetchResult",
    "LiveTransport",
    "LiveUpdateChannel",
    "MalformedRecord",
    "PriceFeed",
    "PriceFeedError",
    "PollingTransport",
    "PriceRecord",
    "SourceClient",
    "SourceDescriptor",
    "TableState",
    "create_feed_router",
    "create_price_feed",
    "merge",
]
