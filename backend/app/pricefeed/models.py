"""Data models for commodity price records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import FetchError


@dataclass(frozen=True, slots=True)
class PriceRecord:
    """Immutable, normalized price observation for one instrument from one source."""

    id: str
    name: str
    price: float
    unit: str
    currency: str
    change: float
    change_percentage: float
    timestamp: datetime  # timezone-aware UTC
    source: str
    source_url: str = ""
    category: str = "uncategorized"

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.change > 0:
            return "up"
        elif self.change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "unit": self.unit,
            "currency": self.currency,
            "change": self.change,
            "changePercentage": self.change_percentage,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "sourceUrl": self.source_url,
            "category": self.category,
        }


@dataclass(frozen=True, slots=True)
class SourceDescriptor:
    """A configured price provider.

    `endpoint` may contain a `{base_url}` placeholder filled in by the HTTP
    client. `shape` selects the payload normalizer.
    """

    key: str
    endpoint: str
    name: str = ""
    shape: str = "canonical"

    @property
    def display_name(self) -> str:
        return self.name or self.key

    def url(self, base_url: str = "") -> str:
        return self.endpoint.format(base_url=base_url.rstrip("/"))


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of one source fetch: records on success, an error otherwise."""

    source_key: str
    records: tuple[PriceRecord, ...] = field(default_factory=tuple)
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
