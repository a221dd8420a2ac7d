"""Fakes and builders shared by the price feed tests."""

import asyncio
from datetime import datetime, timezone

from app.pricefeed.interface import LiveTransport, SourceClient
from app.pricefeed.models import PriceRecord, SourceDescriptor

HANG = object()  # Behaviour marker: never respond


class Delayed:
    """Behaviour: respond with `payload` after `seconds`."""

    def __init__(self, seconds: float, payload) -> None:
        self.seconds = seconds
        self.payload = payload


class Scripted:
    """Behaviour: one entry per call, in order; the last entry repeats."""

    def __init__(self, *behaviours) -> None:
        self._behaviours = list(behaviours)

    def next(self):
        if len(self._behaviours) > 1:
            return self._behaviours.pop(0)
        return self._behaviours[0]


def make_record(record_id: str, price: float = 10.0, name: str | None = None, **overrides) -> PriceRecord:
    """Build a PriceRecord with sensible defaults."""
    fields = {
        "id": record_id,
        "name": name or f"Instrument {record_id}",
        "price": price,
        "unit": "bushel",
        "currency": "USD",
        "change": 0.0,
        "change_percentage": 0.0,
        "timestamp": datetime(2024, 2, 10, 16, 0, tzinfo=timezone.utc),
        "source": "Test",
        "source_url": "",
        "category": "grains",
    }
    fields.update(overrides)
    return PriceRecord(**fields)


def canonical(name: str, price: float | None, **extra) -> dict:
    """A canonical-shape payload fragment."""
    fragment = {"name": name, "unit": "bushel", "currency": "USD", "category": "grains"}
    if price is not None:
        fragment["price"] = price
    fragment.update(extra)
    return fragment


class FakeSourceClient(SourceClient):
    """SourceClient whose payload per source key is scripted.

    Behaviours: a payload (returned as-is), an exception instance (raised),
    HANG (sleeps past any reasonable timeout), Delayed, or Scripted (per call).
    """

    def __init__(self, behaviours: dict, timeout: float = 0.05) -> None:
        sources = {key: SourceDescriptor(key, f"https://example.test/{key}", key) for key in behaviours}
        super().__init__(sources, timeout=timeout)
        self._behaviours = behaviours
        self.calls: list[str] = []
        self.closed = False

    async def _fetch_payload(self, source: SourceDescriptor):
        self.calls.append(source.key)
        behaviour = self._behaviours[source.key]
        if isinstance(behaviour, Scripted):
            behaviour = behaviour.next()
        if isinstance(behaviour, Delayed):
            await asyncio.sleep(behaviour.seconds)
            behaviour = behaviour.payload
        if behaviour is HANG:
            await asyncio.sleep(10)
        if isinstance(behaviour, BaseException):
            raise behaviour
        await asyncio.sleep(0)
        return behaviour

    async def aclose(self) -> None:
        self.closed = True


class FakeTransport(LiveTransport):
    """Scriptable LiveTransport: fails the next `fail_next` connects, then succeeds."""

    def __init__(self, fail_next: int = 0) -> None:
        self.fail_next = fail_next
        self.connect_calls = 0
        self.close_calls = 0
        self._on_message = None
        self._on_disconnect = None

    @property
    def connected(self) -> bool:
        return self._on_message is not None

    async def connect(self, on_message, on_disconnect) -> None:
        self.connect_calls += 1
        await asyncio.sleep(0)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ConnectionRefusedError("connection refused")
        self._on_message = on_message
        self._on_disconnect = on_disconnect

    async def close(self) -> None:
        self.close_calls += 1
        self._on_message = None
        self._on_disconnect = None

    def emit(self, batch: list[PriceRecord]) -> None:
        if self._on_message is not None:
            self._on_message(batch)

    def drop(self) -> None:
        on_disconnect = self._on_disconnect
        self._on_message = None
        self._on_disconnect = None
        if on_disconnect is not None:
            on_disconnect(ConnectionResetError("peer reset"))


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)
