"""Normalization of provider payloads into PriceRecord.

Each SourceDescriptor names a payload shape. Shapes form a closed tagged
union: one normalizer function per tag, registered in `_NORMALIZERS`.
A fragment that a normalizer cannot map raises MalformedRecord.

Shapes:
    canonical - camelCase records (USDA, FAO, World Bank):
        {"name", "price", "unit", "currency", "change", "changePercentage",
         "timestamp", "source", "sourceUrl", "category"}
    quote - exchange futures quotes (CME, ICE):
        {"description", "last", "netChange", "pctChange", "uom", "ccy",
         "tradeTime", "group", "link"}
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from .exceptions import MalformedRecord
from .models import PriceRecord, SourceDescriptor

logger = logging.getLogger(__name__)

# Fixed namespace so ids are identical across processes and refreshes
RECORD_NAMESPACE = uuid.UUID("5b0d6f0e-3c5a-4f0e-9d8e-1c2a7f4b9e61")

CLOCK_SKEW_TOLERANCE = timedelta(minutes=5)

DEFAULT_CURRENCY = "USD"
DEFAULT_CATEGORY = "uncategorized"


def record_id(source_key: str, name: str) -> str:
    """Stable id for an (instrument, source) pairing."""
    key = f"{source_key.strip().upper()}:{' '.join(name.lower().split())}"
    return str(uuid.uuid5(RECORD_NAMESPACE, key))


def normalize_record(
    source: SourceDescriptor,
    fragment: Any,
    now: datetime | None = None,
) -> PriceRecord:
    """Map one payload fragment to a PriceRecord or raise MalformedRecord."""
    normalizer = _NORMALIZERS.get(source.shape)
    if normalizer is None:
        raise MalformedRecord(
            f"Unknown payload shape {source.shape!r}",
            {"source": source.key, "field": "shape"},
        )
    if not isinstance(fragment, Mapping):
        raise MalformedRecord(
            f"Expected an object, got {type(fragment).__name__}",
            {"source": source.key},
        )
    return normalizer(source, fragment, now or datetime.now(timezone.utc))


def normalize_payload(
    source: SourceDescriptor,
    payload: Any,
    now: datetime | None = None,
) -> list[PriceRecord]:
    """Normalize a full provider response, dropping malformed fragments.

    Accepts a bare list of fragments or an object wrapping one under
    "data" or "results". Anything else is a source-level parse failure.
    """
    if isinstance(payload, Mapping):
        fragments = payload.get("data", payload.get("results"))
    else:
        fragments = payload
    if not isinstance(fragments, list):
        raise MalformedRecord(
            "Payload does not contain a list of records",
            {"source": source.key},
        )

    now = now or datetime.now(timezone.utc)
    records: list[PriceRecord] = []
    for fragment in fragments:
        try:
            records.append(normalize_record(source, fragment, now))
        except MalformedRecord as e:
            logger.warning("Dropping record from %s: %s", source.key, e)
    logger.debug("Normalized %d/%d records from %s", len(records), len(fragments), source.key)
    return records


# --- Field helpers ---


def _required_price(source: SourceDescriptor, value: Any, field_name: str) -> float:
    if value is None:
        raise MalformedRecord(
            f"Missing required field {field_name!r}",
            {"source": source.key, "field": field_name},
        )
    price = _number(source, value, field_name)
    if price < 0:
        raise MalformedRecord(
            f"Negative price {price}",
            {"source": source.key, "field": field_name},
        )
    return price


def _required_name(source: SourceDescriptor, value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedRecord(
            f"Missing required field {field_name!r}",
            {"source": source.key, "field": field_name},
        )
    return value.strip()


def _number(source: SourceDescriptor, value: Any, field_name: str, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise MalformedRecord(
            f"Field {field_name!r} is not numeric",
            {"source": source.key, "field": field_name},
        )
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedRecord(
            f"Field {field_name!r} is not numeric: {value!r}",
            {"source": source.key, "field": field_name},
        ) from None
    if not math.isfinite(number):
        raise MalformedRecord(
            f"Field {field_name!r} is not finite",
            {"source": source.key, "field": field_name},
        )
    return number


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _timestamp(source: SourceDescriptor, value: Any, now: datetime) -> datetime:
    """Parse ISO-8601 strings or epoch milliseconds. Missing means `now`."""
    if value is None or value == "":
        return now
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            ts = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        elif isinstance(value, str):
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        else:
            raise TypeError(type(value).__name__)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise MalformedRecord(
            f"Unparseable timestamp {value!r}: {e}",
            {"source": source.key, "field": "timestamp"},
        ) from None

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    if ts > now + CLOCK_SKEW_TOLERANCE:
        raise MalformedRecord(
            f"Timestamp {ts.isoformat()} is in the future",
            {"source": source.key, "field": "timestamp"},
        )
    return ts


# --- Per-shape normalizers ---


def _normalize_canonical(
    source: SourceDescriptor, fragment: Mapping[str, Any], now: datetime
) -> PriceRecord:
    name = _required_name(source, fragment.get("name"), "name")
    return PriceRecord(
        id=record_id(source.key, name),
        name=name,
        price=_required_price(source, fragment.get("price"), "price"),
        unit=_text(fragment.get("unit"), ""),
        currency=_text(fragment.get("currency"), DEFAULT_CURRENCY).upper(),
        change=_number(source, fragment.get("change"), "change"),
        change_percentage=_number(source, fragment.get("changePercentage"), "changePercentage"),
        timestamp=_timestamp(source, fragment.get("timestamp"), now),
        source=_text(fragment.get("source"), source.display_name),
        source_url=_text(fragment.get("sourceUrl"), ""),
        category=_text(fragment.get("category"), DEFAULT_CATEGORY).lower(),
    )


def _normalize_quote(
    source: SourceDescriptor, fragment: Mapping[str, Any], now: datetime
) -> PriceRecord:
    name = _required_name(source, fragment.get("description"), "description")
    return PriceRecord(
        id=record_id(source.key, name),
        name=name,
        price=_required_price(source, fragment.get("last"), "last"),
        unit=_text(fragment.get("uom"), ""),
        currency=_text(fragment.get("ccy"), DEFAULT_CURRENCY).upper(),
        change=_number(source, fragment.get("netChange"), "netChange"),
        change_percentage=_number(source, fragment.get("pctChange"), "pctChange"),
        timestamp=_timestamp(source, fragment.get("tradeTime"), now),
        source=source.display_name,
        source_url=_text(fragment.get("link"), ""),
        category=_text(fragment.get("group"), DEFAULT_CATEGORY).lower(),
    )


_NORMALIZERS: dict[str, Callable[[SourceDescriptor, Mapping[str, Any], datetime], PriceRecord]] = {
    "canonical": _normalize_canonical,
    "quote": _normalize_quote,
}
