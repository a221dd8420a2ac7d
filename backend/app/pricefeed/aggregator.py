"""Settle-all refresh across every configured source, plus a polling live transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from .exceptions import FetchError
from .interface import LiveTransport, OnDisconnect, OnMessage, SourceClient
from .models import FetchResult, PriceRecord, SourceDescriptor

logger = logging.getLogger(__name__)


class Aggregator:
    """Fans one refresh out to every source and gathers with settle-all semantics.

    A failing source never cancels or fails its siblings: it contributes
    zero records and its FetchError is logged and kept in `last_errors`.
    """

    def __init__(self, client: SourceClient, sources: Iterable[SourceDescriptor] | None = None) -> None:
        self._client = client
        self._sources = list(sources) if sources is not None else client.get_sources()
        self._last_errors: list[FetchError] = []

    @property
    def sources(self) -> list[SourceDescriptor]:
        return list(self._sources)

    @property
    def last_errors(self) -> list[FetchError]:
        """Source failures from the most recent refresh."""
        return list(self._last_errors)

    async def collect(self, sources: Iterable[SourceDescriptor] | None = None) -> list[FetchResult]:
        """Fetch every source concurrently and wait for all of them to settle.

        Results come back in source order regardless of completion order.
        """
        targets = list(sources) if sources is not None else self._sources
        outcomes = await asyncio.gather(
            *(self._client.fetch(source) for source in targets),
            return_exceptions=True,
        )

        results: list[FetchResult] = []
        for source, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                # SourceClient.fetch() should never raise; contain it if it does
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                outcome = FetchResult(source.key, error=FetchError(source.key, outcome))
            results.append(outcome)
        return results

    async def refresh_all(self, sources: Iterable[SourceDescriptor] | None = None) -> list[PriceRecord]:
        """Run one full refresh. Returns the flattened records of successful sources.

        An all-failed refresh returns [] rather than raising; callers decide
        whether an empty batch is actionable.
        """
        results = await self.collect(sources)

        records: list[PriceRecord] = []
        errors: list[FetchError] = []
        for result in results:
            if result.ok:
                records.extend(result.records)
            else:
                errors.append(result.error)
                logger.warning("Source %s failed: %s", result.source_key, result.error.cause)

        self._last_errors = errors
        logger.info(
            "Refresh complete: %d records from %d/%d sources",
            len(records),
            len(results) - len(errors),
            len(results),
        )
        return records

    async def aclose(self) -> None:
        """Release the underlying source client."""
        await self._client.aclose()


class PollingTransport(LiveTransport):
    """LiveTransport that re-polls the providers every `interval` seconds.

    Used when no push source exists: each non-empty refresh is delivered as
    one live batch. A round where every source fails is logged and skipped;
    the connection itself stays up.
    """

    def __init__(self, aggregator: Aggregator, interval: float = 5.0) -> None:
        self._aggregator = aggregator
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._on_message: OnMessage | None = None

    async def connect(self, on_message: OnMessage, on_disconnect: OnDisconnect) -> None:
        await self.close()
        self._on_message = on_message
        self._task = asyncio.create_task(self._run_loop(), name="provider-poll")
        logger.info("Polling transport connected (%.1fs interval)", self._interval)

    async def close(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._on_message = None

    @property
    def connected(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            records = await self._aggregator.refresh_all()
            if not records:
                logger.warning("Poll returned no records")
                continue
            if self._on_message is not None:
                self._on_message(records)
