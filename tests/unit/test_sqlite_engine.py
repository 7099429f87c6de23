"""Unit tests for the sqlite3-backed SQL engine adapter."""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from embedded_sql.adapters.outbound import SQLiteEngine, SQLiteHandle
from embedded_sql.domain.value_objects import ColumnType, ResultCode


class TestSQLiteEngine:
    """Tests for SQLiteEngine."""

    @pytest.fixture
    def engine(self) -> SQLiteEngine:
        return SQLiteEngine(busy_timeout_seconds=0.5)

    @pytest.fixture
    def handle(self, engine: SQLiteEngine) -> Generator[SQLiteHandle, None, None]:
        code, handle = engine.open(":memory:")
        assert code == ResultCode.OK
        yield handle
        engine.close(handle)

    def _prepare(self, engine: SQLiteEngine, handle: SQLiteHandle, sql: str):
        code, program, _ = engine.prepare(handle, sql)
        assert code == ResultCode.OK, engine.errmsg(handle)
        assert program is not None
        return program

    def test_open_rejects_non_database(self, engine: SQLiteEngine, temp_dir: Path) -> None:
        """Garbage images are reported at open time."""
        path = temp_dir / "garbage.sqlite"
        path.write_bytes(b"definitely not a database" * 100)

        code, handle = engine.open(str(path))

        assert code == ResultCode.NOTADB or code == ResultCode.ERROR
        assert handle is not None
        assert "not a database" in engine.errmsg(handle)
        engine.close(handle)

    def test_prepare_reports_tail(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        code, program, tail = engine.prepare(handle, "SELECT 1; SELECT 2")

        assert code == ResultCode.OK
        assert program is not None
        assert tail == " SELECT 2"

    @pytest.mark.parametrize("sql", ["", "   ", ";", "-- only a comment"])
    def test_prepare_empty(self, engine: SQLiteEngine, handle: SQLiteHandle, sql: str) -> None:
        code, program, _ = engine.prepare(handle, sql)

        assert code == ResultCode.OK
        assert program is None

    def test_prepare_syntax_error(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        code, program, _ = engine.prepare(handle, "SELEC 1")

        assert code == ResultCode.ERROR
        assert program is None
        assert "syntax error" in engine.errmsg(handle)

    def test_prepare_does_not_execute(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        """Compiling a statement has no side effects."""
        assert engine.execute_script(handle, "CREATE TABLE t (a)") == ResultCode.OK
        program = self._prepare(engine, handle, "INSERT INTO t VALUES (1)")
        engine.finalize(program)

        count = self._prepare(engine, handle, "SELECT count(*) FROM t")
        assert engine.step(count) == ResultCode.ROW
        assert engine.column_int64(count, 0) == 0

    def test_prepare_missing_table(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        code, program, _ = engine.prepare(handle, "SELECT * FROM missing")

        assert code == ResultCode.ERROR
        assert "no such table" in engine.errmsg(handle)

    def test_explain_statement(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "EXPLAIN SELECT 1")

        assert engine.step(program) == ResultCode.ROW

    def test_step_through_rows(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT 1 UNION ALL SELECT 2")

        assert engine.step(program) == ResultCode.ROW
        assert engine.column_int64(program, 0) == 1
        assert engine.step(program) == ResultCode.ROW
        assert engine.column_int64(program, 0) == 2
        assert engine.step(program) == ResultCode.DONE
        assert engine.data_count(program) == 0
        assert engine.step(program) == ResultCode.DONE

    def test_reset_rewinds(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT 7")
        engine.step(program)
        engine.step(program)

        assert engine.reset(program) == ResultCode.OK
        assert engine.step(program) == ResultCode.ROW
        assert engine.column_int64(program, 0) == 7

    def test_bind_positional_and_named(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT ?, :name, ?")

        assert engine.bind_parameter_count(program) == 3
        assert engine.bind_parameter_index(program, ":name") == 2
        assert engine.bind_parameter_index(program, "name") == 0

        assert engine.bind_int64(program, 1, 10) == ResultCode.OK
        assert engine.bind_text(program, 2, memoryview("é".encode("utf-8"))) == ResultCode.OK
        assert engine.bind_blob(program, 3, memoryview(b"\x00\xff")) == ResultCode.OK
        assert engine.step(program) == ResultCode.ROW

        assert engine.column_int64(program, 0) == 10
        assert engine.column_text(program, 1) == "é"
        assert engine.column_blob(program, 2) == b"\x00\xff"

    def test_bind_out_of_range(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT ?")

        assert engine.bind_int64(program, 2, 1) == ResultCode.RANGE
        assert engine.errmsg(handle) == "column index out of range"

    def test_bind_while_stepping_is_misuse(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        program = self._prepare(engine, handle, "SELECT ?")
        engine.step(program)

        assert engine.bind_null(program, 1) == ResultCode.MISUSE

    def test_clear_bindings(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT ?")
        engine.bind_double(program, 1, 1.5)
        engine.clear_bindings(program)
        engine.step(program)

        assert engine.column_type(program, 0) == ColumnType.NULL

    def test_column_types(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT 1, 1.5, 'a', x'00', NULL")
        engine.step(program)

        assert [engine.column_type(program, i) for i in range(5)] == [
            ColumnType.INTEGER,
            ColumnType.FLOAT,
            ColumnType.TEXT,
            ColumnType.BLOB,
            ColumnType.NULL,
        ]
        assert engine.column_double(program, 1) == 1.5

    def test_column_names_before_step(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        """Queries are described before they are stepped."""
        program = self._prepare(engine, handle, "SELECT 1 AS a, 2 AS b")

        assert engine.column_count(program) == 2
        assert [engine.column_name(program, i) for i in range(2)] == ["a", "b"]

    def test_column_count_without_result(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        engine.execute_script(handle, "CREATE TABLE t (a)")
        program = self._prepare(engine, handle, "INSERT INTO t VALUES (1)")

        assert engine.column_count(program) == 0
        assert engine.step(program) == ResultCode.DONE
        assert engine.column_count(program) == 0

    def test_pragma_described_before_step(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        engine.execute_script(handle, "CREATE TABLE t (a INTEGER, b TEXT)")
        program = self._prepare(engine, handle, "PRAGMA table_info(t)")

        before = [engine.column_name(program, i) for i in range(engine.column_count(program))]
        assert engine.step(program) == ResultCode.ROW
        after = [engine.column_name(program, i) for i in range(engine.column_count(program))]

        assert before == ["cid", "name", "type", "notnull", "dflt_value", "pk"]
        assert before == after

    def test_returning_described_without_side_effects(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        engine.execute_script(handle, "CREATE TABLE t (a)")
        program = self._prepare(engine, handle, "INSERT INTO t VALUES (7) RETURNING a AS added")

        assert engine.column_count(program) == 1
        assert engine.column_name(program, 0) == "added"

        count = self._prepare(engine, handle, "SELECT count(*) FROM t")
        engine.step(count)
        assert engine.column_int64(count, 0) == 0
        engine.finalize(count)

        assert engine.step(program) == ResultCode.ROW
        assert engine.column_int64(program, 0) == 7

    def test_describe_inside_open_transaction(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        """Describing rolls back only its own work."""
        engine.execute_script(handle, "CREATE TABLE t (a); BEGIN; INSERT INTO t VALUES (1)")
        program = self._prepare(engine, handle, "DELETE FROM t RETURNING a")

        assert engine.column_count(program) == 1
        assert handle.connection.in_transaction

        count = self._prepare(engine, handle, "SELECT count(*) FROM t")
        engine.step(count)
        assert engine.column_int64(count, 0) == 1
        engine.finalize(count)
        engine.finalize(program)
        assert engine.execute_script(handle, "ROLLBACK") == ResultCode.OK

    def test_prepare_skips_leading_empty_statements(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        code, program, tail = engine.prepare(handle, ";; SELECT 1 AS one; SELECT 2")

        assert code == ResultCode.OK
        assert program is not None
        assert tail == " SELECT 2"
        assert engine.step(program) == ResultCode.ROW
        assert engine.column_int64(program, 0) == 1

    def test_invalid_utf8_text_reads_back(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        program = self._prepare(engine, handle, "SELECT CAST(x'ff61' AS TEXT)")

        assert engine.step(program) == ResultCode.ROW
        assert engine.column_type(program, 0) == ColumnType.TEXT
        assert engine.column_text(program, 0) == "\ufffda"

    def test_step_error(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        engine.execute_script(handle, "CREATE TABLE t (a UNIQUE); INSERT INTO t VALUES (1)")
        program = self._prepare(engine, handle, "INSERT INTO t VALUES (1)")

        code = engine.step(program)

        assert code in (ResultCode.CONSTRAINT, ResultCode.ERROR)
        assert "UNIQUE" in engine.errmsg(handle)

    def test_finalize_twice(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        program = self._prepare(engine, handle, "SELECT 1")

        assert engine.finalize(program) == ResultCode.OK
        assert engine.finalize(program) == ResultCode.MISUSE
        assert engine.step(program) == ResultCode.MISUSE

    def test_execute_script(self, engine: SQLiteEngine, handle: SQLiteHandle) -> None:
        script = """
            CREATE TABLE t (a TEXT);
            INSERT INTO t VALUES ('x;y');
            -- comment ; with semicolon
            INSERT INTO t VALUES ('z');
        """
        assert engine.execute_script(handle, script) == ResultCode.OK

        program = self._prepare(engine, handle, "SELECT group_concat(a, ',') FROM t")
        engine.step(program)
        assert engine.column_text(program, 0) == "x;y,z"

    def test_execute_script_stops_at_error(
        self, engine: SQLiteEngine, handle: SQLiteHandle
    ) -> None:
        code = engine.execute_script(handle, "CREATE TABLE t (a); BROKEN; CREATE TABLE u (a)")

        assert code == ResultCode.ERROR
        code, program, _ = engine.prepare(handle, "SELECT * FROM u")
        assert code == ResultCode.ERROR

    def test_close_finalizes_programs(self, engine: SQLiteEngine) -> None:
        _, handle = engine.open(":memory:")
        program = self._prepare(engine, handle, "SELECT 1")

        assert engine.close(handle) == ResultCode.OK
        assert program.finalized
