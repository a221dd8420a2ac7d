"""CSV export of a table snapshot."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from .models import PriceRecord

# Fixed column order; header names follow the wire format
CSV_COLUMNS = (
    "name",
    "price",
    "unit",
    "currency",
    "change",
    "changePercentage",
    "timestamp",
    "source",
    "category",
)


def to_csv(records: Iterable[PriceRecord]) -> str:
    """Serialize records to CSV text with a header row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in records:
        row = record.to_dict()
        writer.writerow([row[column] for column in CSV_COLUMNS])
    return buf.getvalue()
