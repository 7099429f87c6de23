"""Prepared statements.

A Statement owns one compiled program and the transient buffers holding
its bound text and blob parameters. It is created by Database.prepare()
and drives the program through bind/step/get cycles:

    stmt = db.prepare("SELECT name, age FROM users WHERE age >= :min")
    stmt.bind({":min": 18})
    while stmt.step():
        row = stmt.get_as_object()
    stmt.free()

The statement keeps only a weak reference to its database, which it uses
to turn engine statuses into errors carrying the engine's message.
"""

from __future__ import annotations

import weakref
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from embedded_sql.domain.errors import ClosedError, UsageError
from embedded_sql.domain.services import TransientMemoryTracker
from embedded_sql.domain.value_objects import (
    ColumnType,
    ResultCode,
    SQLValue,
    StatementId,
    StatementKind,
    StatementState,
    Value,
    ValueKind,
)
from embedded_sql.infrastructure.metrics import MetricsRegistry
from embedded_sql.ports.outbound import ProgramHandle, SQLEngine

if TYPE_CHECKING:
    from embedded_sql.application.database import Database


class Statement:
    """A compiled statement owned by a Database.

    Attributes:
        id: Registry slot in the owning database.
        sql: The statement text that was compiled.
        kind: Coarse classification of the statement.

    Thread Safety:
        None. Use a statement from one thread of control at a time.
    """

    def __init__(
        self,
        statement_id: StatementId,
        database: Database,
        engine: SQLEngine,
        program: ProgramHandle,
        sql: str,
        kind: StatementKind,
        metrics: MetricsRegistry,
    ) -> None:
        self._id = statement_id
        self._database = weakref.ref(database)
        self._engine = engine
        self._program: ProgramHandle | None = program
        self._sql = sql
        self._kind = kind
        self._metrics = metrics
        self._state = StatementState.OPEN_UNBOUND

        # Next parameter index used by bind_value() without an explicit index
        self._bind_position = 1
        # Next column read by the get_*() readers without an explicit index
        self._read_position = 0

        self._memory = TransientMemoryTracker(on_change=self._on_memory_change)

    def __repr__(self) -> str:
        return f"Statement(id={self._id}, state={self._state.name}, sql={self._sql!r})"

    @property
    def id(self) -> StatementId:
        return self._id

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def kind(self) -> StatementKind:
        return self._kind

    @property
    def state(self) -> StatementState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is StatementState.CLOSED

    @property
    def transient_memory(self) -> TransientMemoryTracker:
        """Buffers currently handed to the engine for bound text and blobs."""
        return self._memory

    # Binding

    def bind(self, values: Any = None) -> bool:
        """Bind parameters, replacing every previous binding.

        The statement is reset first. A list or tuple binds positionally
        starting at index 1. A mapping binds by parameter name, sigil
        included (``{":id": 1, "$name": "x"}``); names the statement does
        not use are ignored. None only resets.

        Returns:
            True.

        Raises:
            ClosedError: If the statement was freed.
            UsageError: If ``values`` is neither a sequence nor a mapping.
            UnknownTypeError: If a value has no storage class.
            EngineError: If the engine rejects a binding.
        """
        self._ensure_open()
        self.reset()
        if values is None:
            return True

        if isinstance(values, Mapping):
            for name, value in values.items():
                index = self._engine.bind_parameter_index(self._program, name)
                if index != 0:
                    self.bind_value(value, index)
        elif isinstance(values, (list, tuple)):
            for index, value in enumerate(values, start=1):
                self.bind_value(value, index)
        else:
            raise UsageError(
                f"parameters must be a list, tuple or mapping, not {type(values).__name__}"
            )

        self._state = StatementState.OPEN_BOUND
        return True

    def bind_value(self, value: Any, index: int | None = None) -> bool:
        """Bind one value.

        Args:
            value: A Value, or a plain Python object converted with
                ``Value.from_python``.
            index: 1-based parameter index. Defaults to the next position,
                which starts at 1 after every reset().

        Returns:
            True.
        """
        self._ensure_open()
        if index is None:
            index = self._bind_position
            self._bind_position += 1

        typed = Value.from_python(value)
        engine, program = self._engine, self._program

        if typed.kind is ValueKind.INTEGER:
            code = engine.bind_int64(program, index, typed.data)
        elif typed.kind is ValueKind.FLOAT:
            code = engine.bind_double(program, index, typed.data)
        elif typed.kind is ValueKind.TEXT:
            buffer = self._memory.allocate(typed.data.encode("utf-8"))
            code = engine.bind_text(program, index, buffer.view())
        elif typed.kind is ValueKind.BLOB:
            buffer = self._memory.allocate(typed.data)
            code = engine.bind_blob(program, index, buffer.view())
        else:
            code = engine.bind_null(program, index)

        self._owner()._check(code, "bind")
        self._state = StatementState.OPEN_BOUND
        return True

    # Execution

    def step(self) -> bool:
        """Advance to the next row.

        Returns:
            True if a row is available, False once the result is exhausted.

        Raises:
            ClosedError: If the statement was freed.
            EngineError: On any other engine status.
        """
        self._ensure_open()
        code = self._engine.step(self._program)
        self._read_position = 0

        if code == ResultCode.ROW:
            self._state = StatementState.STEPPING
            self._metrics.rows_returned_total.inc()
            return True
        if code == ResultCode.DONE:
            self._state = StatementState.EXHAUSTED
            return False
        raise self._owner()._error(code, "step")

    def run(self, values: Any = None) -> None:
        """Bind ``values`` if given, step once and reset.

        Meant for statements executed for their side effects.
        """
        if values is not None:
            self.bind(values)
        try:
            self.step()
        finally:
            self.reset()

    def reset(self) -> bool:
        """Release bound buffers, clear bindings and rewind the program.

        Raises:
            ClosedError: If the statement was freed.
            EngineError: If the engine cannot clear or rewind the program.
        """
        self._ensure_open()
        self._memory.release_all()
        self._bind_position = 1
        self._read_position = 0

        cleared = self._engine.clear_bindings(self._program)
        rewound = self._engine.reset(self._program)
        self._state = StatementState.OPEN_UNBOUND

        database = self._owner()
        database._check(cleared, "reset")
        database._check(rewound, "reset")
        return True

    def free(self) -> bool:
        """Finalize the program and leave the database's registry.

        The statement is CLOSED afterwards even if the engine reports an
        error while finalizing.

        Raises:
            ClosedError: If the statement was already freed.
            EngineError: If the engine fails to finalize the program.
        """
        self._ensure_open()
        self._memory.release_all()
        code = self._engine.finalize(self._program)
        self._program = None
        self._state = StatementState.CLOSED

        database = self._database()
        if database is None:
            return True
        database._unregister(self)
        database._check(code, "finalize")
        return True

    # Reading

    def get(self, params: Any = None) -> list[SQLValue]:
        """Decode the current row.

        If ``params`` is given, binds them and steps first.

        Returns:
            One value per column: int, float, str, bytes or None.
        """
        if params is not None and self.bind(params):
            self.step()
        self._ensure_open()
        return [
            self._decode(index) for index in range(self._engine.data_count(self._program))
        ]

    def get_column_names(self) -> list[str]:
        self._ensure_open()
        count = self._engine.column_count(self._program)
        return [self._engine.column_name(self._program, index) for index in range(count)]

    def get_as_object(self, params: Any = None) -> dict[str, SQLValue]:
        """Decode the current row as a column name to value mapping.

        When several columns share a name, the rightmost one wins.
        """
        values = self.get(params)
        names = self.get_column_names()
        return dict(zip(names, values))

    def get_number(self, index: int | None = None) -> int | float:
        """Read a column as a number, advancing the read position if no index is given.

        INTEGER columns read as int, everything else as float.
        """
        index = self._next_column(index)
        if self._engine.column_type(self._program, index) == ColumnType.INTEGER:
            return self._engine.column_int64(self._program, index)
        return self._engine.column_double(self._program, index)

    def get_string(self, index: int | None = None) -> str:
        index = self._next_column(index)
        return self._engine.column_text(self._program, index)

    def get_blob(self, index: int | None = None) -> bytes:
        index = self._next_column(index)
        return self._engine.column_blob(self._program, index)

    # Internals

    def _decode(self, index: int) -> SQLValue:
        column_type = self._engine.column_type(self._program, index)
        if column_type == ColumnType.INTEGER:
            return self._engine.column_int64(self._program, index)
        if column_type == ColumnType.FLOAT:
            return self._engine.column_double(self._program, index)
        if column_type == ColumnType.TEXT:
            return self._engine.column_text(self._program, index)
        if column_type == ColumnType.BLOB:
            return bytes(self._engine.column_blob(self._program, index))
        return None

    def _next_column(self, index: int | None) -> int:
        self._ensure_open()
        if index is None:
            index = self._read_position
            self._read_position += 1
        return index

    def _ensure_open(self) -> None:
        if self._state is StatementState.CLOSED:
            raise ClosedError("statement closed")

    def _owner(self) -> Database:
        database = self._database()
        if database is None:
            raise ClosedError("database closed")
        return database

    def _on_memory_change(self, buffers: int, size: int) -> None:
        self._metrics.transient_buffers_outstanding.inc(buffers)
        self._metrics.transient_bytes_outstanding.inc(size)
