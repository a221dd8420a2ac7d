"""Price threshold alerts evaluated against incoming batches."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import PriceRecord

logger = logging.getLogger(__name__)

CONDITIONS = ("above", "below")


@dataclass(frozen=True, slots=True)
class PriceAlert:
    """Notify when a commodity's price crosses a threshold.

    `commodity` matches record names case-insensitively as a substring,
    so "wheat" matches "Wheat (Hard Red Winter)".
    """

    commodity: str
    threshold: float
    condition: str = "above"
    notify_by: tuple[str, ...] = ("email",)
    active: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)  # Unix seconds

    def __post_init__(self) -> None:
        if self.condition not in CONDITIONS:
            raise ValueError(f"condition must be one of {CONDITIONS}, got {self.condition!r}")

    def matches(self, record: PriceRecord) -> bool:
        return self.commodity.strip().lower() in record.name.lower()

    def is_met(self, price: float) -> bool:
        if self.condition == "above":
            return price > self.threshold
        return price < self.threshold


@dataclass(frozen=True, slots=True)
class AlertTrigger:
    alert: PriceAlert
    record: PriceRecord

    def to_dict(self) -> dict:
        return {
            "alertId": self.alert.id,
            "commodity": self.alert.commodity,
            "condition": self.alert.condition,
            "threshold": self.alert.threshold,
            "notifyBy": list(self.alert.notify_by),
            "record": self.record.to_dict(),
        }


class AlertMonitor:
    """Holds alerts and reports threshold crossings.

    Edge-triggered: once an alert fires for a record id it stays quiet for
    that id until a later batch shows the condition no longer holds.
    """

    def __init__(self, alerts: Iterable[PriceAlert] = ()) -> None:
        self._alerts: dict[str, PriceAlert] = {a.id: a for a in alerts}
        self._fired: set[tuple[str, str]] = set()  # (alert id, record id)

    def add(self, alert: PriceAlert) -> None:
        self._alerts[alert.id] = alert

    def remove(self, alert_id: str) -> None:
        """Remove an alert. No-op if unknown."""
        self._alerts.pop(alert_id, None)
        self._fired = {key for key in self._fired if key[0] != alert_id}

    def get_alerts(self, active: bool | None = None) -> list[PriceAlert]:
        """All alerts, or only active/inactive ones."""
        alerts = list(self._alerts.values())
        if active is None:
            return alerts
        return [a for a in alerts if a.active is active]

    def check(self, batch: Iterable[PriceRecord]) -> list[AlertTrigger]:
        triggers: list[AlertTrigger] = []
        for record in batch:
            for alert in self._alerts.values():
                if not alert.active or not alert.matches(record):
                    continue
                key = (alert.id, record.id)
                if not alert.is_met(record.price):
                    self._fired.discard(key)
                    continue
                if key in self._fired:
                    continue
                self._fired.add(key)
                triggers.append(AlertTrigger(alert, record))
                logger.info(
                    "Alert %s: %s %s %.4f (now %.4f %s)",
                    alert.id,
                    record.name,
                    alert.condition,
                    alert.threshold,
                    record.price,
                    record.currency,
                )
        return triggers
