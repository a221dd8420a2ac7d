"""Abstract interfaces for price sources and live update transports."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from .exceptions import FetchError
from .models import FetchResult, PriceRecord, SourceDescriptor
from .normalizer import normalize_payload

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 5.0

OnMessage = Callable[[list[PriceRecord]], None]
OnDisconnect = Callable[[BaseException | None], None]


class SourceClient(ABC):
    """Contract for fetching one provider's quotes.

    `fetch()` never raises for transport, HTTP, parse or timeout failures:
    it returns a FetchResult with no records and a FetchError instead.
    Subclasses only implement `_fetch_payload()`, which returns the raw
    decoded response and may raise anything.

    Usage:
        client = HttpSourceClient(base_url=..., sources=SOURCES)
        result = await client.fetch(SOURCES_BY_KEY["USDA"])
        if not result.ok:
            log(result.error)
        await client.aclose()
    """

    def __init__(
        self,
        sources: Mapping[str, SourceDescriptor],
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._sources = dict(sources)
        self._timeout = timeout

    async def fetch(self, source: SourceDescriptor) -> FetchResult:
        """Fetch and normalize one source's records, bounded by the timeout."""
        if source.key not in self._sources:
            return FetchResult(source.key, error=FetchError(source.key, "unknown source"))

        try:
            payload = await asyncio.wait_for(self._fetch_payload(source), self._timeout)
            records = normalize_payload(source, payload)
        except asyncio.TimeoutError:
            return FetchResult(
                source.key,
                error=FetchError(source.key, f"timed out after {self._timeout:.1f}s"),
            )
        except Exception as e:
            return FetchResult(source.key, error=FetchError(source.key, e))

        return FetchResult(source.key, records=tuple(records))

    def get_sources(self) -> list[SourceDescriptor]:
        """Return the configured source descriptors."""
        return list(self._sources.values())

    async def aclose(self) -> None:
        """Release any held connections. Safe to call multiple times."""

    @abstractmethod
    async def _fetch_payload(self, source: SourceDescriptor) -> Any:
        """Perform the network call and return the decoded payload."""


class LiveTransport(ABC):
    """Push transport behind the live update channel.

    Lifecycle (driven by LiveUpdateChannel, never by views):
        await transport.connect(on_message, on_disconnect)
        # ... on_message(batch) called for each pushed batch ...
        # ... on_disconnect(exc) called once if the connection drops ...
        await transport.close()

    A real streaming socket can replace the simulated transport without
    touching the channel, the table or the aggregator.
    """

    @abstractmethod
    async def connect(self, on_message: OnMessage, on_disconnect: OnDisconnect) -> None:
        """Establish the connection. Raises if the attempt fails.

        Returns once connected; messages are delivered afterwards from a
        background task owned by the transport.
        """

    @abstractmethod
    async def close(self) -> None:
        """Stop emitting and release resources.

        Safe to call multiple times, and when never connected. After close()
        the transport must not call on_message again.
        """
