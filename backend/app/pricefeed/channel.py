"""Reconnecting live update channel shared by all push subscribers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .exceptions import ChannelTerminalFailure
from .interface import LiveTransport
from .models import PriceRecord

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[list[PriceRecord]], None]
FailureCallback = Callable[[ChannelTerminalFailure], None]


class ChannelState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    TERMINATED = "terminated"


@dataclass(eq=False)
class _Subscriber:
    on_update: UpdateCallback
    on_failure: FailureCallback | None = None


class LiveUpdateChannel:
    """One transport shared by every subscriber, opened and closed on demand.

    State machine:
        IDLE -> CONNECTING          first subscribe()
        CONNECTING -> CONNECTED     transport.connect() succeeded
        CONNECTED -> DISCONNECTED   transport reported a drop
        DISCONNECTED -> RECONNECTING
        RECONNECTING -> CONNECTED   attempt counter resets
        (any) -> IDLE               `max_attempts` consecutive failures;
                                    subscribers get ChannelTerminalFailure
        (any) -> TERMINATED -> IDLE last subscriber left; transport closed

    subscribe() must be called from a running event loop. The returned
    unsubscribe callable is idempotent and may be called from inside a
    delivery callback.
    """

    def __init__(
        self,
        transport: LiveTransport,
        max_attempts: int = 5,
        reconnect_delay: float = 3.0,
    ) -> None:
        self._transport = transport
        self._max_attempts = max_attempts
        self._delay = reconnect_delay
        self._subscribers: list[_Subscriber] = []
        self._state = ChannelState.IDLE
        self._attempts = 0  # Consecutive failed connection attempts
        self._task: asyncio.Task | None = None
        self._closing: set[asyncio.Task] = set()  # Torn-down tasks still closing the transport

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def attempts(self) -> int:
        """Consecutive failed connection attempts since the last success."""
        return self._attempts

    def subscribe(
        self,
        on_update: UpdateCallback,
        on_failure: FailureCallback | None = None,
    ) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unregisters it."""
        subscriber = _Subscriber(on_update, on_failure)
        self._subscribers.append(subscriber)
        if self._task is None:
            self._open()

        def unsubscribe() -> None:
            self._remove(subscriber)

        return unsubscribe

    async def stop(self) -> None:
        """Drop every subscriber and wait until the transport is closed."""
        self._subscribers.clear()
        self._teardown()
        await self.wait_closed()

    async def wait_closed(self) -> None:
        """Wait for pending teardowns to finish closing the transport."""
        if self._closing:
            await asyncio.wait(set(self._closing))

    # --- Internal ---

    def _open(self) -> None:
        self._state = ChannelState.CONNECTING
        self._attempts = 0
        self._task = asyncio.create_task(
            self._run(tuple(self._closing)), name="live-update-channel"
        )
        self._task.add_done_callback(self._on_task_done)

    def _remove(self, subscriber: _Subscriber) -> None:
        if subscriber not in self._subscribers:
            return
        self._subscribers.remove(subscriber)
        if not self._subscribers:
            self._teardown()

    def _teardown(self) -> None:
        """Release the transport once nobody is listening."""
        task = self._task
        if task is None:
            return
        self._task = None
        self._closing.add(task)
        self._state = ChannelState.TERMINATED
        task.cancel()
        logger.info("Live channel: last subscriber left, closing transport")

    def _dispatch(self, batch: list[PriceRecord]) -> None:
        """Deliver a batch to current subscribers in registration order."""
        for subscriber in list(self._subscribers):
            # Skip anyone unsubscribed earlier in this same delivery
            if subscriber not in self._subscribers:
                continue
            try:
                subscriber.on_update(batch)
            except Exception:
                logger.exception("Live update subscriber raised; continuing delivery")

    def _fail(self, failure: ChannelTerminalFailure) -> None:
        """Give up: notify every subscriber and return to IDLE."""
        subscribers = self._subscribers
        self._subscribers = []
        if self._task is not None:
            self._closing.add(self._task)
        self._task = None
        self._state = ChannelState.IDLE
        self._attempts = 0
        logger.error("%s", failure)
        for subscriber in subscribers:
            if subscriber.on_failure is None:
                continue
            try:
                subscriber.on_failure(failure)
            except Exception:
                logger.exception("Live update failure callback raised")

    async def _run(self, previous: tuple[asyncio.Task, ...]) -> None:
        # A previous connection may still be closing the shared transport
        if previous:
            await asyncio.wait(previous)

        try:
            while self._subscribers:
                lost = asyncio.Event()
                cause: list[BaseException | None] = []

                def on_disconnect(exc: BaseException | None = None) -> None:
                    cause.append(exc)
                    lost.set()

                try:
                    await self._transport.connect(self._dispatch, on_disconnect)
                except Exception as e:
                    self._attempts += 1
                    logger.warning(
                        "Live channel connection attempt %d/%d failed: %s",
                        self._attempts,
                        self._max_attempts,
                        e,
                    )
                    if self._attempts >= self._max_attempts:
                        self._fail(ChannelTerminalFailure(self._attempts, e))
                        return
                    self._state = ChannelState.RECONNECTING
                    await asyncio.sleep(self._delay)
                    continue

                self._attempts = 0
                self._state = ChannelState.CONNECTED
                logger.info("Live channel connected (%d subscribers)", len(self._subscribers))

                await lost.wait()
                self._state = ChannelState.DISCONNECTED
                logger.warning("Live channel disconnected: %s", cause[0] if cause else "unknown")
                await self._close_transport()
                self._state = ChannelState.RECONNECTING
        finally:
            await self._close_transport()

    async def _close_transport(self) -> None:
        try:
            await self._transport.close()
        except Exception:
            logger.exception("Live transport close failed")

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._closing.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Live channel task crashed: %s", task.exception())
        if self._task is None and self._state is ChannelState.TERMINATED:
            self._state = ChannelState.IDLE
