"""Tests for the merge rule and TableState."""

from app.pricefeed.table import TableState, merge
from fakes import make_record


class TestMerge:
    """Unit tests for the pure merge function."""

    def test_idempotent(self):
        """Applying the same batch twice equals applying it once."""
        current = {"a": make_record("a", 1.0)}
        batch = [make_record("a", 2.0), make_record("b", 3.0)]

        once = merge(current, batch)
        twice = merge(once, batch)
        assert once == twice

    def test_additive_for_disjoint_ids(self):
        """Disjoint ids: the result holds both sets unchanged."""
        current = {"a": make_record("a"), "b": make_record("b")}
        incoming = [make_record("c"), make_record("d"), make_record("e")]

        result = merge(current, incoming)

        assert len(result) == len(current) + len(incoming)
        for key, record in current.items():
            assert result[key] is record
        for record in incoming:
            assert result[record.id] is record

    def test_overwrite_replaces_whole_record(self):
        """Same id: the incoming record replaces the old one field-for-field."""
        old = make_record("a", 1.0, name="Old", unit="ton", source_url="https://old", category="softs")
        new = make_record("a", 2.0, name="New")

        result = merge({"a": old}, [new])

        assert result == {"a": new}
        assert result["a"].unit == "bushel"
        assert result["a"].source_url == ""
        assert result["a"].category == "grains"

    def test_never_deletes(self):
        """Ids missing from the batch are retained."""
        current = {"a": make_record("a"), "b": make_record("b")}
        result = merge(current, [make_record("a", 5.0)])
        assert set(result) == {"a", "b"}
        assert result["b"] is current["b"]

    def test_does_not_mutate_current(self):
        current = {"a": make_record("a", 1.0)}
        merge(current, [make_record("a", 2.0), make_record("b")])
        assert current == {"a": make_record("a", 1.0)}

    def test_later_duplicate_in_batch_wins(self):
        result = merge({}, [make_record("a", 1.0), make_record("a", 2.0)])
        assert result["a"].price == 2.0

    def test_empty_batch(self):
        current = {"a": make_record("a")}
        assert merge(current, []) == current

    def test_concrete_scenario(self):
        result = merge({}, [make_record("x", 10), make_record("y", 20)])
        assert set(result) == {"x", "y"}


class TestTableState:
    """TableState as the single write path."""

    def test_apply_and_get(self):
        table = TableState()
        record = make_record("a")
        assert table.apply([record]) == 1
        assert table.get("a") is record
        assert "a" in table
        assert "b" not in table

    def test_snapshot_is_a_copy(self):
        """Snapshots do not change when later batches are applied."""
        table = TableState()
        table.apply([make_record("a", 1.0)])
        snapshot = table.snapshot()

        table.apply([make_record("a", 2.0), make_record("b")])

        assert snapshot["a"].price == 1.0
        assert "b" not in snapshot
        assert len(table) == 2

    def test_mutating_snapshot_does_not_write(self):
        table = TableState()
        table.apply([make_record("a")])
        table.snapshot().clear()
        assert len(table) == 1

    def test_version_increments_per_batch(self):
        table = TableState()
        v0 = table.version
        table.apply([make_record("a"), make_record("b")])
        assert table.version == v0 + 1
        table.apply([make_record("a", 2.0)])
        assert table.version == v0 + 2

    def test_empty_batch_is_noop(self):
        """An empty refresh keeps the last known table and version."""
        table = TableState()
        table.apply([make_record("a")])
        version = table.version
        assert table.apply([]) == 0
        assert table.version == version
        assert len(table) == 1

    def test_refresh_and_push_use_same_rule(self):
        """Batches are merged the same way regardless of origin."""
        table = TableState()
        table.apply([make_record("a", 1.0), make_record("b", 1.0)])  # refresh
        table.apply([make_record("a", 1.5)])  # push
        table.apply([make_record("b", 2.0), make_record("c", 3.0)])  # refresh

        snapshot = table.snapshot()
        assert {k: r.price for k, r in snapshot.items()} == {"a": 1.5, "b": 2.0, "c": 3.0}

    def test_clear(self):
        table = TableState()
        table.apply([make_record("a")])
        table.clear()
        assert len(table) == 0
