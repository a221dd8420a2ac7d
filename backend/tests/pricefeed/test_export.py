"""Tests for CSV export."""

import csv
import io

from app.pricefeed.export import CSV_COLUMNS, to_csv
from fakes import make_record


class TestCsvExport:
    def test_header_order(self):
        header = to_csv([]).splitlines()[0]
        assert header == "name,price,unit,currency,change,changePercentage,timestamp,source,category"
        assert tuple(header.split(",")) == CSV_COLUMNS

    def test_rows_follow_columns(self):
        record = make_record("x", 6.75, name="Wheat (Hard Red Winter)", change=-0.1, change_percentage=-1.5)
        rows = list(csv.reader(io.StringIO(to_csv([record]))))

        assert rows[1] == [
            "Wheat (Hard Red Winter)",
            "6.75",
            "bushel",
            "USD",
            "-0.1",
            "-1.5",
            "2024-02-10T16:00:00+00:00",
            "Test",
            "grains",
        ]

    def test_quotes_fields_with_commas(self):
        record = make_record("x", name="Cattle, Live")
        rows = list(csv.reader(io.StringIO(to_csv([record]))))
        assert rows[1][0] == "Cattle, Live"

    def test_one_row_per_record(self):
        text = to_csv([make_record("a"), make_record("b"), make_record("c")])
        assert len(text.splitlines()) == 4
