"""Unit tests for Statement."""

from __future__ import annotations

import pytest

from embedded_sql.application import Database, Statement
from embedded_sql.domain.errors import (
    ClosedError,
    EngineError,
    UnknownTypeError,
    UsageError,
)
from embedded_sql.domain.value_objects import StatementKind, StatementState, Value
from embedded_sql.infrastructure.metrics import MetricsRegistry


@pytest.mark.unit
class TestStatementBinding:
    """Tests for parameter binding."""

    def test_positional(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?, ?")

        assert stmt.bind([1, "two", None]) is True
        assert stmt.state is StatementState.OPEN_BOUND
        assert stmt.step()
        assert stmt.get() == [1, "two", None]

    def test_tuple_binds_positionally(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?")

        assert stmt.get((1, 2)) == [1, 2]

    def test_named(self, database: Database) -> None:
        stmt = database.prepare("SELECT :a, @b, $c, :a")

        assert stmt.get({":a": 1, "@b": 2.5, "$c": "x"}) == [1, 2.5, "x", 1]

    def test_unknown_name_is_ignored(self, database: Database) -> None:
        """Names the statement does not use leave their slot NULL."""
        stmt = database.prepare("SELECT :b")

        assert stmt.bind({"$a": 1}) is True
        assert stmt.step()
        assert stmt.get() == [None]

    def test_numbered(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?2, ?1")

        assert stmt.get(["first", "second"]) == ["second", "first"]

    def test_bind_replaces_previous_bindings(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?")
        stmt.bind([1, 2])
        stmt.bind([3])
        stmt.step()

        assert stmt.get() == [3, None]

    def test_bind_none_only_resets(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")
        stmt.bind(["x"])

        assert stmt.bind(None) is True
        assert stmt.state is StatementState.OPEN_UNBOUND
        assert stmt.transient_memory.outstanding == 0

    def test_bind_rejects_other_containers(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")

        with pytest.raises(UsageError):
            stmt.bind("abc")

    def test_bind_unknown_type(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")

        with pytest.raises(UnknownTypeError, match="unknown type"):
            stmt.bind([object()])

    def test_bind_out_of_range(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")

        with pytest.raises(EngineError, match="column index out of range"):
            stmt.bind([1, 2])

    def test_bind_value_uses_position_counter(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?")
        stmt.bind_value("a")
        stmt.bind_value("b")
        stmt.step()

        assert stmt.get() == ["a", "b"]

    def test_reset_rewinds_position_counter(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?")
        stmt.bind_value("a")
        stmt.reset()
        stmt.bind_value("b")
        stmt.step()

        assert stmt.get() == ["b", None]

    def test_explicit_value_kind(self, database: Database) -> None:
        stmt = database.prepare("SELECT typeof(?), typeof(?)")

        assert stmt.get([3.0, Value.real(3.0)]) == ["integer", "real"]

    def test_booleans_and_wide_integers(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?, typeof(?)")

        assert stmt.get([True, False, 2**64]) == [1, 0, "real"]


@pytest.mark.unit
class TestTransientMemory:
    """Tests for ownership of bound text and blob buffers."""

    def test_text_and_blob_are_tracked(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?, ?, ?, ?")
        stmt.bind(["héllo", b"\x00\x01", 1, None])

        assert stmt.transient_memory.outstanding == 2
        assert stmt.transient_memory.outstanding_bytes == len("héllo".encode("utf-8")) + 2

    def test_reset_releases(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")
        stmt.bind(["text"])
        stmt.reset()

        assert stmt.transient_memory.outstanding == 0

    def test_run_releases(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")
        stmt.run(["text"])

        assert stmt.transient_memory.outstanding == 0
        assert stmt.state is StatementState.OPEN_UNBOUND

    def test_free_releases(self, database: Database) -> None:
        stmt = database.prepare("SELECT ?")
        stmt.bind([b"blob"])
        tracker = stmt.transient_memory
        stmt.free()

        assert tracker.outstanding == 0

    def test_metrics_follow_buffers(
        self, database: Database, metrics_registry: MetricsRegistry
    ) -> None:
        stmt = database.prepare("SELECT ?, ?")
        stmt.bind(["ab", b"cde"])

        assert metrics_registry.sample("embedded_sql_transient_buffers_outstanding") == 2
        assert metrics_registry.sample("embedded_sql_transient_bytes_outstanding") == 5

        stmt.reset()
        assert metrics_registry.sample("embedded_sql_transient_buffers_outstanding") == 0
        assert metrics_registry.sample("embedded_sql_transient_bytes_outstanding") == 0


@pytest.mark.unit
class TestStatementReading:
    """Tests for stepping and decoding."""

    def test_step_states(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1")

        assert stmt.state is StatementState.OPEN_UNBOUND
        assert stmt.step() is True
        assert stmt.state is StatementState.STEPPING
        assert stmt.step() is False
        assert stmt.state is StatementState.EXHAUSTED
        stmt.reset()
        assert stmt.state is StatementState.OPEN_UNBOUND

    def test_get_decodes_storage_types(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1, 2.5, 'text', x'0001', NULL")
        stmt.step()

        row = stmt.get()
        assert row == [1, 2.5, "text", b"\x00\x01", None]
        assert isinstance(row[3], bytes)

    def test_get_without_row(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1")

        assert stmt.get() == []

    def test_column_names(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1 AS a, 'x' AS b")

        assert stmt.get_column_names() == ["a", "b"]
        stmt.step()
        assert stmt.get_column_names() == ["a", "b"]

    def test_get_as_object(self, database: Database) -> None:
        stmt = database.prepare("SELECT :v AS value, 2 AS other")

        assert stmt.get_as_object({":v": "x"}) == {"value": "x", "other": 2}

    def test_get_as_object_duplicate_names(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1 AS x, 2 AS x")
        stmt.step()

        assert stmt.get_as_object() == {"x": 2}

    def test_typed_readers_advance(self, database: Database) -> None:
        stmt = database.prepare("SELECT 7, 1.5, 'abc', x'ff'")
        stmt.step()

        assert stmt.get_number() == 7
        assert stmt.get_number() == 1.5
        assert stmt.get_string() == "abc"
        assert stmt.get_blob() == b"\xff"

    def test_typed_readers_with_index(self, database: Database) -> None:
        stmt = database.prepare("SELECT 'abc', 42")
        stmt.step()

        assert stmt.get_number(1) == 42
        assert stmt.get_string(0) == "abc"
        assert stmt.get_string() == "abc"

    def test_step_resets_read_position(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1 UNION ALL SELECT 2")
        stmt.step()
        stmt.get_number()
        stmt.step()

        assert stmt.get_number() == 2

    def test_step_error(self, database: Database) -> None:
        database.run("CREATE TABLE t (a INTEGER NOT NULL)")
        stmt = database.prepare("INSERT INTO t VALUES (?)")

        with pytest.raises(EngineError, match="NOT NULL"):
            stmt.run([None])
        assert stmt.state is StatementState.OPEN_UNBOUND

    def test_reuse_across_bindings(self, database: Database) -> None:
        database.run("CREATE TABLE t (a, b)")
        insert = database.prepare("INSERT INTO t VALUES (?, ?)")
        for row in ([1, "one"], [2, "two"], [3, b"three"]):
            insert.run(row)
        insert.free()

        assert database.exec("SELECT a, b FROM t ORDER BY a")[0].values == [
            [1, "one"],
            [2, "two"],
            [3, b"three"],
        ]


@pytest.mark.unit
class TestStatementLifecycle:
    """Tests for free() and closed statements."""

    def test_attributes(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1; SELECT 2")

        assert isinstance(stmt, Statement)
        assert stmt.sql == "SELECT 1;"
        assert stmt.kind is StatementKind.QUERY
        assert stmt.id >= 1
        assert "SELECT 1" in repr(stmt)

    def test_free(self, database: Database) -> None:
        stmt = database.prepare("SELECT 1")

        assert stmt.free() is True
        assert stmt.closed
        assert stmt.state is StatementState.CLOSED
        assert database.open_statements == 0

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.bind([1]),
            lambda s: s.step(),
            lambda s: s.get(),
            lambda s: s.get_column_names(),
            lambda s: s.get_as_object(),
            lambda s: s.reset(),
            lambda s: s.run(),
            lambda s: s.get_number(),
            lambda s: s.bind_value(1),
            lambda s: s.free(),
        ],
    )
    def test_closed_statement_rejects_operations(self, database: Database, operation) -> None:
        stmt = database.prepare("SELECT ?")
        stmt.free()

        with pytest.raises(ClosedError, match="statement closed"):
            operation(stmt)
