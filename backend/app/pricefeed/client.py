"""HTTP client for commodity price providers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from .interface import DEFAULT_FETCH_TIMEOUT, SourceClient
from .models import SourceDescriptor

logger = logging.getLogger(__name__)


class HttpSourceClient(SourceClient):
    """SourceClient that issues `GET <endpoint>` per provider.

    One shared httpx.AsyncClient serves every source. The per-call timeout
    is enforced by SourceClient.fetch(); httpx gets the same value so a
    stalled socket is also closed at the transport level.
    """

    def __init__(
        self,
        base_url: str,
        sources: Iterable[SourceDescriptor],
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__({s.key: s for s in sources}, timeout=timeout)
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    async def _fetch_payload(self, source: SourceDescriptor) -> Any:
        url = source.url(self._base_url)
        response = await self._client.get(url)
        response.raise_for_status()
        logger.debug("GET %s -> %d", url, response.status_code)
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()
