"""SQLite engine adapter over the standard library sqlite3 module.

This adapter implements the SQLEngine protocol. sqlite3 only exposes
cursors, so a compiled program is emulated on top of one:

    - prepare() cuts the first statement, numbers its parameters and
      compiles it through ``EXPLAIN`` so that errors surface without
      running anything
    - parameters are rewritten to ``?N`` so that positional and named
      parameters can be bound through a single sequence
    - the first step() executes the statement with the current bindings;
      later steps fetch one row each
    - reset() drops the cursor; the next step() executes again
    - statements that can return rows are described before their first
      step() by running them once; those with side effects run inside a
      savepoint that is rolled back

Result codes and messages follow SQLite, taken from the ``sqlite3.Error``
raised by the module.

Thread Safety:
    Connections are opened with ``check_same_thread=False`` so that a
    database may be handed between threads, but callers must serialize access.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any

from embedded_sql.domain.services import (
    ParameterMap,
    TokenKind,
    classify_statement,
    is_blank,
    scan_parameters,
    skip_empty_statements,
    split_first_statement,
    tokenize,
)
from embedded_sql.domain.value_objects import ColumnType, ResultCode, StatementKind


MISUSE_MESSAGE = "bad parameter or other API misuse"
RANGE_MESSAGE = "column index out of range"

# Leading keywords of statements that may produce a result set
_ROW_KEYWORDS = frozenset({"SELECT", "VALUES", "WITH", "PRAGMA", "EXPLAIN"})

_DESCRIBE_SAVEPOINT = "embedded_sql_describe"


@dataclass(eq=False)
class SQLiteHandle:
    """An open connection and the programs compiled on it."""

    connection: sqlite3.Connection
    location: str
    last_error: str = "not an error"
    programs: set[SQLiteProgram] = field(default_factory=set)


@dataclass(eq=False)
class SQLiteProgram:
    """One compiled statement.

    Attributes:
        handle: The connection the program was compiled on.
        sql: The statement text as given by the caller.
        parameters: Numbering of the statement's parameters.
        kind: Statement classification.
        bindings: Current value of every parameter, index 0 holding ``?1``.
        cursor: Live cursor between the first step() and the next reset().
        row: The current row, None before the first row and after the last.
        columns: Result column names, known once the statement has executed
            or has been described.
        returns_rows: Whether the statement may produce a result set.
        side_effects: Whether running the statement may change the database.
    """

    handle: SQLiteHandle
    sql: str
    parameters: ParameterMap
    kind: StatementKind
    bindings: list[Any]
    cursor: sqlite3.Cursor | None = None
    row: tuple[Any, ...] | None = None
    columns: list[str] | None = None
    returns_rows: bool = False
    side_effects: bool = True
    exhausted: bool = False
    finalized: bool = False


def _column_names(cursor: sqlite3.Cursor) -> list[str]:
    if cursor.description is None:
        return []
    return [description[0] for description in cursor.description]


def _decode_text(data: bytes) -> str:
    # TEXT holding invalid UTF-8 reads back with replacement characters.
    return data.decode("utf-8", errors="replace")


def _first_word(sql: str) -> str:
    for token in tokenize(sql):
        if token.kind is TokenKind.WORD:
            return token.text.upper()
        if token.kind not in (TokenKind.WHITESPACE, TokenKind.COMMENT):
            break
    return ""


def _has_returning(sql: str) -> bool:
    return any(
        token.kind is TokenKind.WORD and token.text.upper() == "RETURNING"
        for token in tokenize(sql)
    )


class SQLiteEngine:
    """SQLEngine implementation backed by sqlite3.

    Example:
        >>> engine = SQLiteEngine()
        >>> code, handle = engine.open(":memory:")
        >>> code, program, tail = engine.prepare(handle, "SELECT 1 AS one; SELECT 2")
        >>> engine.step(program), engine.column_int64(program, 0), tail
        (<ResultCode.ROW: 100>, 1, ' SELECT 2')
    """

    def __init__(self, busy_timeout_seconds: float = 5.0) -> None:
        """Initialize the engine.

        Args:
            busy_timeout_seconds: How long to wait for a locked image.
        """
        self._busy_timeout_seconds = busy_timeout_seconds

    # Connection

    def open(self, location: str) -> tuple[ResultCode, SQLiteHandle | None]:
        """Open a connection and check that the image is a readable database."""
        try:
            connection = sqlite3.connect(
                location,
                timeout=self._busy_timeout_seconds,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            return self._code_of(e), None
        connection.text_factory = _decode_text

        handle = SQLiteHandle(connection=connection, location=location)
        try:
            connection.execute("SELECT count(*) FROM sqlite_master").close()
        except sqlite3.Error as e:
            return self._fail(handle, e), handle
        return ResultCode.OK, handle

    def close(self, handle: SQLiteHandle) -> ResultCode:
        for program in list(handle.programs):
            self.finalize(program)
        try:
            handle.connection.close()
        except sqlite3.Error as e:
            return self._fail(handle, e)
        return ResultCode.OK

    def errmsg(self, handle: SQLiteHandle) -> str:
        return handle.last_error

    def execute_script(self, handle: SQLiteHandle, sql: str) -> ResultCode:
        rest = sql
        while rest:
            code, program, rest = self.prepare(handle, rest)
            if code != ResultCode.OK:
                return code
            if program is None:
                continue
            try:
                code = self.step(program)
                while code == ResultCode.ROW:
                    code = self.step(program)
            finally:
                self.finalize(program)
            if code != ResultCode.DONE:
                return code
        return ResultCode.OK

    # Programs

    def prepare(
        self, handle: SQLiteHandle, sql: str
    ) -> tuple[ResultCode, SQLiteProgram | None, str]:
        head, tail = split_first_statement(skip_empty_statements(sql))
        if is_blank(head):
            return ResultCode.OK, None, tail

        parameters = scan_parameters(head)
        kind = classify_statement(head)
        first_word = _first_word(head)
        program = SQLiteProgram(
            handle=handle,
            sql=head,
            parameters=parameters,
            kind=kind,
            bindings=[None] * parameters.count,
            returns_rows=first_word in _ROW_KEYWORDS or _has_returning(head),
            side_effects=not (kind.is_read_only or first_word == "EXPLAIN"),
        )

        # EXPLAIN compiles without running; an EXPLAIN statement already is one.
        check = parameters.rewritten
        if first_word != "EXPLAIN":
            check = "EXPLAIN " + check
        try:
            handle.connection.execute(check, tuple(program.bindings)).close()
        except sqlite3.Error as e:
            return self._fail(handle, e), None, tail

        handle.programs.add(program)
        return ResultCode.OK, program, tail

    def step(self, program: SQLiteProgram) -> ResultCode:
        if program.finalized:
            return self._misuse(program.handle)
        if program.exhausted:
            return ResultCode.DONE

        try:
            if program.cursor is None:
                program.cursor = program.handle.connection.execute(
                    program.parameters.rewritten, tuple(program.bindings)
                )
                if program.columns is None:
                    program.columns = _column_names(program.cursor)
            row = program.cursor.fetchone()
        except sqlite3.Error as e:
            program.row = None
            return self._fail(program.handle, e)

        if row is None:
            program.row = None
            program.exhausted = True
            return ResultCode.DONE

        program.row = row
        return ResultCode.ROW

    def reset(self, program: SQLiteProgram) -> ResultCode:
        if program.finalized:
            return self._misuse(program.handle)
        self._drop_cursor(program)
        return ResultCode.OK

    def clear_bindings(self, program: SQLiteProgram) -> ResultCode:
        if program.finalized:
            return self._misuse(program.handle)
        program.bindings = [None] * program.parameters.count
        return ResultCode.OK

    def finalize(self, program: SQLiteProgram) -> ResultCode:
        if program.finalized:
            return self._misuse(program.handle)
        self._drop_cursor(program)
        program.finalized = True
        program.handle.programs.discard(program)
        return ResultCode.OK

    # Binding

    def bind_int64(self, program: SQLiteProgram, index: int, value: int) -> ResultCode:
        return self._bind(program, index, int(value))

    def bind_double(self, program: SQLiteProgram, index: int, value: float) -> ResultCode:
        return self._bind(program, index, float(value))

    def bind_text(self, program: SQLiteProgram, index: int, data: memoryview) -> ResultCode:
        return self._bind(program, index, bytes(data).decode("utf-8"))

    def bind_blob(self, program: SQLiteProgram, index: int, data: memoryview) -> ResultCode:
        return self._bind(program, index, bytes(data))

    def bind_null(self, program: SQLiteProgram, index: int) -> ResultCode:
        return self._bind(program, index, None)

    def bind_parameter_count(self, program: SQLiteProgram) -> int:
        return program.parameters.count

    def bind_parameter_index(self, program: SQLiteProgram, name: str) -> int:
        return program.parameters.index_of(name)

    # Columns

    def column_count(self, program: SQLiteProgram) -> int:
        """Return the number of result columns.

        Until the statement has executed once, statements that may return
        rows are described by running them with the current bindings and
        discarding the cursor. Statements with side effects run inside a
        savepoint that is rolled back. Statements that cannot be described
        report 0.
        """
        if program.columns is None and program.returns_rows and not program.finalized:
            program.columns = self._describe(program)
        return len(program.columns or ())

    def data_count(self, program: SQLiteProgram) -> int:
        return len(program.row) if program.row is not None else 0

    def column_name(self, program: SQLiteProgram, index: int) -> str:
        if program.columns is None:
            self.column_count(program)
        return (program.columns or [])[index]

    def column_type(self, program: SQLiteProgram, index: int) -> ColumnType:
        value = self._value(program, index)
        if value is None:
            return ColumnType.NULL
        if isinstance(value, int):
            return ColumnType.INTEGER
        if isinstance(value, float):
            return ColumnType.FLOAT
        if isinstance(value, str):
            return ColumnType.TEXT
        return ColumnType.BLOB

    def column_int64(self, program: SQLiteProgram, index: int) -> int:
        value = self._value(program, index)
        if isinstance(value, (int, float)):
            return int(value)
        try:
            return int(float(self._as_text(value)))
        except ValueError:
            return 0

    def column_double(self, program: SQLiteProgram, index: int) -> float:
        value = self._value(program, index)
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return float(self._as_text(value))
        except ValueError:
            return 0.0

    def column_text(self, program: SQLiteProgram, index: int) -> str:
        return self._as_text(self._value(program, index))

    def column_blob(self, program: SQLiteProgram, index: int) -> bytes:
        value = self._value(program, index)
        if value is None:
            return b""
        if isinstance(value, bytes):
            return bytes(bytearray(value))
        return self._as_text(value).encode("utf-8")

    # Internals

    @staticmethod
    def _run_for_columns(program: SQLiteProgram) -> list[str] | None:
        try:
            cursor = program.handle.connection.execute(
                program.parameters.rewritten, tuple(program.bindings)
            )
        except sqlite3.Error:
            return None
        columns = _column_names(cursor)
        cursor.close()
        return columns

    def _describe(self, program: SQLiteProgram) -> list[str] | None:
        if not program.side_effects:
            return self._run_for_columns(program)

        connection = program.handle.connection
        try:
            connection.execute(f"SAVEPOINT {_DESCRIBE_SAVEPOINT}")
        except sqlite3.Error:
            return None
        try:
            return self._run_for_columns(program)
        finally:
            connection.execute(f"ROLLBACK TO {_DESCRIBE_SAVEPOINT}")
            connection.execute(f"RELEASE {_DESCRIBE_SAVEPOINT}")

    def _bind(self, program: SQLiteProgram, index: int, value: Any) -> ResultCode:
        if program.finalized or program.cursor is not None:
            return self._misuse(program.handle)
        if not 1 <= index <= len(program.bindings):
            program.handle.last_error = RANGE_MESSAGE
            return ResultCode.RANGE
        program.bindings[index - 1] = value
        return ResultCode.OK

    @staticmethod
    def _drop_cursor(program: SQLiteProgram) -> None:
        if program.cursor is not None:
            program.cursor.close()
        program.cursor = None
        program.row = None
        program.exhausted = False

    @staticmethod
    def _value(program: SQLiteProgram, index: int) -> Any:
        if program.row is None or not 0 <= index < len(program.row):
            return None
        return program.row[index]

    @staticmethod
    def _as_text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bytes):
            return _decode_text(value)
        return str(value)

    @staticmethod
    def _code_of(error: sqlite3.Error) -> ResultCode:
        code = getattr(error, "sqlite_errorcode", None)
        if code is None:
            return ResultCode.ERROR
        try:
            return ResultCode(code & 0xFF)
        except ValueError:
            return ResultCode.ERROR

    def _fail(self, handle: SQLiteHandle, error: sqlite3.Error) -> ResultCode:
        handle.last_error = str(error)
        return self._code_of(error)

    @staticmethod
    def _misuse(handle: SQLiteHandle) -> ResultCode:
        handle.last_error = MISUSE_MESSAGE
        return ResultCode.MISUSE
