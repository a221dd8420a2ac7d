"""Merged, keyed table of current price records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from threading import Lock

from .models import PriceRecord


def merge(current: Mapping[str, PriceRecord], incoming: Iterable[PriceRecord]) -> dict[str, PriceRecord]:
    """Merge a batch into a table. Returns a new dict; `current` is untouched.

    Last writer wins per id: an incoming record replaces the stored one
    whole, with no field-level merging. Ids absent from the batch are kept.
    The result does not depend on where the batch came from.
    """
    merged = dict(current)
    for record in incoming:
        merged[record.id] = record
    return merged


class TableState:
    """In-memory table of the latest record per id.

    Writers: full refreshes and live update batches, both through apply().
    Readers: views, via snapshot() copies.
    """

    def __init__(self) -> None:
        self._records: dict[str, PriceRecord] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every applied batch

    def apply(self, batch: Iterable[PriceRecord]) -> int:
        """Merge a batch into the table. Returns the number of records applied.

        The only write path. Each batch is merged without interleaving with
        another batch's merge.
        """
        batch = list(batch)
        if not batch:
            return 0
        with self._lock:
            self._records = merge(self._records, batch)
            self._version += 1
        return len(batch)

    def snapshot(self) -> dict[str, PriceRecord]:
        """Point-in-time copy of every record, keyed by id."""
        with self._lock:
            return dict(self._records)

    def get(self, record_id: str) -> PriceRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def clear(self) -> None:
        """Discard all records (the last consumer went away)."""
        with self._lock:
            self._records = {}
            self._version += 1

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._records
