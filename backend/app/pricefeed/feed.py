"""Owner service wiring refreshes and live updates into one table."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable

from .aggregator import Aggregator
from .alerts import AlertMonitor, AlertTrigger
from .channel import LiveUpdateChannel
from .exceptions import ChannelTerminalFailure, FetchError
from .models import PriceRecord
from .table import TableState

logger = logging.getLogger(__name__)

MAX_PENDING_TRIGGERS = 256


class PriceFeed:
    """Keeps a TableState current from full refreshes and live pushes.

    Both paths feed the same TableState.apply(). The feed is constructed
    and owned explicitly; nothing runs until start().

    Overlapping refreshes are applied in the order refresh() was called,
    whatever order their fetches finish in. Live batches are applied as
    they arrive.

    Lifecycle:
        feed = create_price_feed()
        await feed.start()          # subscribe to live updates, seed the table
        await feed.refresh()        # manual refresh at any time
        snapshot = feed.snapshot()  # point-in-time copy for views
        await feed.stop()
    """

    def __init__(
        self,
        aggregator: Aggregator,
        channel: LiveUpdateChannel,
        table: TableState | None = None,
        alerts: AlertMonitor | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._channel = channel
        self._table = table if table is not None else TableState()
        self._alerts = alerts if alerts is not None else AlertMonitor()
        self._unsubscribe: Callable[[], None] | None = None
        self._last_failure: ChannelTerminalFailure | None = None
        # Oldest triggers are dropped once nobody drains them
        self._triggers: deque[AlertTrigger] = deque(maxlen=MAX_PENDING_TRIGGERS)
        # Resolved when the most recently issued refresh has had its turn
        self._last_turn: asyncio.Future[None] | None = None

    @property
    def table(self) -> TableState:
        return self._table

    @property
    def channel(self) -> LiveUpdateChannel:
        return self._channel

    @property
    def alerts(self) -> AlertMonitor:
        return self._alerts

    @property
    def channel_failed(self) -> bool:
        """True once the live channel gave up; views show a degraded state."""
        return self._last_failure is not None

    @property
    def last_failure(self) -> ChannelTerminalFailure | None:
        return self._last_failure

    @property
    def last_errors(self) -> list[FetchError]:
        """Source failures from the most recent refresh."""
        return self._aggregator.last_errors

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        """Subscribe to live updates, then seed the table with a full refresh."""
        self.resubscribe()
        count = await self.refresh()
        logger.info("Price feed started: %d records seeded", count)

    def resubscribe(self) -> None:
        """(Re)register with the live channel. No-op while subscribed."""
        if self._unsubscribe is not None:
            return
        self._last_failure = None
        self._unsubscribe = self._channel.subscribe(self._on_update, self._on_channel_failure)

    async def refresh(self) -> int:
        """Run a full refresh and merge it. Returns the number of records merged.

        An empty refresh leaves the table as it was. A refresh whose fetches
        finish early waits for every earlier refresh to be applied first.
        """
        previous = self._last_turn
        turn = asyncio.get_running_loop().create_future()
        self._last_turn = turn
        try:
            records = await self._aggregator.refresh_all()
            if previous is not None:
                await asyncio.shield(previous)
            if not records:
                logger.warning("Refresh returned no records; keeping last known table")
                return 0
            return self._apply(records)
        finally:
            if previous is not None and not previous.done():
                # Cancelled while waiting: later refreshes still wait for `previous`
                previous.add_done_callback(lambda _: self._release(turn))
            else:
                self._release(turn)

    def snapshot(self) -> list[PriceRecord]:
        """Point-in-time copy of the table, ordered by name then source."""
        return sorted(self._table.snapshot().values(), key=lambda r: (r.name, r.source))

    def drain_triggers(self) -> list[AlertTrigger]:
        """Alert triggers raised since the last call, oldest first.

        At most MAX_PENDING_TRIGGERS are kept between calls.
        """
        triggers = list(self._triggers)
        self._triggers.clear()
        return triggers

    async def stop(self) -> None:
        """Leave the live channel, release resources and discard the table."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._channel.stop()
        await self._aggregator.aclose()
        self._table.clear()
        logger.info("Price feed stopped")

    # --- Internal ---

    def _apply(self, batch: list[PriceRecord]) -> int:
        applied = self._table.apply(batch)
        self._triggers.extend(self._alerts.check(batch))
        return applied

    def _release(self, turn: asyncio.Future[None]) -> None:
        if not turn.done():
            turn.set_result(None)
        if self._last_turn is turn:
            self._last_turn = None

    def _on_update(self, batch: list[PriceRecord]) -> None:
        applied = self._apply(batch)
        logger.debug("Live update: merged %d records", applied)

    def _on_channel_failure(self, failure: ChannelTerminalFailure) -> None:
        self._last_failure = failure
        self._unsubscribe = None
        logger.error("Live updates unavailable: %s", failure)
