"""GBM-based commodity market simulator.

Stands in for the real providers and the real push socket: the simulated
source client serves provider-shaped payloads and the simulated transport
pushes full batches on a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import numpy as np

from .catalog import (
    CROSS_CATEGORY_CORR,
    DEFAULT_SIGMA,
    INTRA_CATEGORY_CORR,
    SEED_INSTRUMENTS,
    SOURCES,
)
from .interface import DEFAULT_FETCH_TIMEOUT, LiveTransport, OnDisconnect, OnMessage, SourceClient
from .models import PriceRecord, SourceDescriptor
from .normalizer import normalize_payload

logger = logging.getLogger(__name__)


class CommodityPriceSimulator:
    """Geometric Brownian Motion simulator for correlated commodity prices.

    Math:
        S(t+dt) = S(t) * exp(-sigma^2/2 * dt + sigma * sqrt(dt) * Z)

    Z is drawn from a correlated standard normal: instruments in the same
    category (grains, oilseeds, ...) move together more than across
    categories. Drift is zero; commodities mean-revert over the horizons
    this simulation covers.
    """

    # One 5s push expressed as a fraction of a trading year
    # 252 trading days * 6.5 hours/day * 3600 seconds/hour = 5,896,800 seconds
    TRADING_SECONDS_PER_YEAR = 252 * 6.5 * 3600
    DEFAULT_DT = 5.0 / TRADING_SECONDS_PER_YEAR

    def __init__(
        self,
        instruments: dict[str, dict] | None = None,
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability
        self._meta: dict[str, dict] = dict(SEED_INSTRUMENTS if instruments is None else instruments)
        self._names: list[str] = list(self._meta)
        self._prices: dict[str, float] = {n: float(m["price"]) for n, m in self._meta.items()}
        self._previous: dict[str, float] = dict(self._prices)
        self._cholesky: np.ndarray | None = None
        self._rebuild_cholesky()

    # --- Public API ---

    def step(self) -> dict[str, float]:
        """Advance all instruments by one time step. Returns {name: new_price}."""
        n = len(self._names)
        if n == 0:
            return {}

        z = np.random.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        result: dict[str, float] = {}
        for i, name in enumerate(self._names):
            sigma = self._meta[name].get("sigma", DEFAULT_SIGMA)
            self._previous[name] = self._prices[name]

            drift = -0.5 * sigma**2 * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z[i]
            self._prices[name] *= math.exp(drift + diffusion)

            # Supply shocks: weather reports, export bans
            if random.random() < self._event_prob:
                shock = random.uniform(0.02, 0.05) * random.choice([-1, 1])
                self._prices[name] *= 1 + shock
                logger.debug("Supply shock on %s: %+.1f%%", name, shock * 100)

            result[name] = round(self._prices[name], 4)
        return result

    def get_price(self, name: str) -> float | None:
        """Current price for an instrument, or None if not simulated."""
        return self._prices.get(name)

    def get_instruments(self) -> list[str]:
        return list(self._names)

    def payload_for(self, source: SourceDescriptor) -> list[dict[str, Any]]:
        """Render the instruments published by `source` in its payload shape."""
        now = datetime.now(timezone.utc)
        payload = []
        for name in self._names:
            meta = self._meta[name]
            if meta.get("source") != source.key:
                continue
            price = round(self._prices[name], 4)
            previous = self._previous[name]
            change = round(price - previous, 4)
            pct = round(change / previous * 100, 4) if previous else 0.0
            if source.shape == "quote":
                payload.append(
                    {
                        "description": name,
                        "last": price,
                        "netChange": change,
                        "pctChange": pct,
                        "uom": meta["unit"],
                        "ccy": "USD",
                        "tradeTime": int(now.timestamp() * 1000),
                        "group": meta["category"],
                        "link": meta.get("url", ""),
                    }
                )
            else:
                payload.append(
                    {
                        "name": name,
                        "price": price,
                        "unit": meta["unit"],
                        "currency": "USD",
                        "change": change,
                        "changePercentage": pct,
                        "timestamp": now.isoformat(),
                        "source": source.display_name,
                        "sourceUrl": meta.get("url", ""),
                        "category": meta["category"],
                    }
                )
        return payload

    def records(self, sources: Iterable[SourceDescriptor] = SOURCES) -> list[PriceRecord]:
        """Current prices for every source, normalized like a refresh would be."""
        batch: list[PriceRecord] = []
        for source in sources:
            batch.extend(normalize_payload(source, self.payload_for(source)))
        return batch

    # --- Internals ---

    def _rebuild_cholesky(self) -> None:
        n = len(self._names)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._names[i], self._names[j])
                corr[i, j] = rho
                corr[j, i] = rho
        self._cholesky = np.linalg.cholesky(corr)

    def _pairwise_correlation(self, a: str, b: str) -> float:
        if self._meta[a].get("category") == self._meta[b].get("category"):
            return INTRA_CATEGORY_CORR
        return CROSS_CATEGORY_CORR


class SimulatedSourceClient(SourceClient):
    """SourceClient backed by the simulator instead of HTTP.

    `latency` and `failure_probability` let a demo (or a test) exercise the
    aggregator's timeout and isolation paths.
    """

    def __init__(
        self,
        simulator: CommodityPriceSimulator,
        sources: Iterable[SourceDescriptor] = SOURCES,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        latency: float = 0.0,
        failure_probability: float = 0.0,
    ) -> None:
        super().__init__({s.key: s for s in sources}, timeout=timeout)
        self._sim = simulator
        self._latency = latency
        self._failure_prob = failure_probability

    async def _fetch_payload(self, source: SourceDescriptor) -> Any:
        if self._latency:
            await asyncio.sleep(self._latency)
        if random.random() < self._failure_prob:
            raise ConnectionError(f"simulated outage at {source.key}")
        payload = self._sim.payload_for(source)
        # Canonical providers wrap their list; exchanges return it bare
        return {"data": payload} if source.shape == "canonical" else payload


class SimulatedTransport(LiveTransport):
    """LiveTransport that steps the simulator and pushes a batch every `interval`."""

    def __init__(
        self,
        simulator: CommodityPriceSimulator,
        interval: float = 5.0,
        connect_delay: float = 1.0,
    ) -> None:
        self._sim = simulator
        self._interval = interval
        self._connect_delay = connect_delay
        self._task: asyncio.Task | None = None
        self._on_message: OnMessage | None = None
        self._on_disconnect: OnDisconnect | None = None

    async def connect(self, on_message: OnMessage, on_disconnect: OnDisconnect) -> None:
        await self.close()
        if self._connect_delay:
            await asyncio.sleep(self._connect_delay)
        self._on_message = on_message
        self._on_disconnect = on_disconnect
        self._task = asyncio.create_task(self._run_loop(), name="simulated-push")
        logger.info("Simulated push transport connected (%.1fs interval)", self._interval)

    async def close(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._on_message = None
        self._on_disconnect = None

    def drop(self, cause: BaseException | None = None) -> None:
        """Simulate an unexpected connection loss."""
        on_disconnect = self._on_disconnect
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
        self._on_message = None
        self._on_disconnect = None
        if on_disconnect is not None:
            on_disconnect(cause or ConnectionResetError("simulated connection drop"))

    @property
    def connected(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._sim.step()
                batch = self._sim.records()
            except Exception:
                logger.exception("Simulator step failed")
                continue
            if self._on_message is not None:
                self._on_message(batch)
