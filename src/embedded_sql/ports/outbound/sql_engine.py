"""SQL Engine port: the capability set of an embedded SQL engine.

This outbound port mirrors the statement-level C interface of an embedded
engine. Operations that can fail return a ResultCode instead of raising;
the caller translates non-success codes into exceptions using errmsg().

The engine is responsible for:
- Opening and closing a connection handle on a backing image
- Compiling one statement at a time into a program
- Binding typed values to 1-based parameter positions
- Stepping programs and exposing the current row's typed columns

References:
    - https://www.sqlite.org/cintro.html
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol

from embedded_sql.domain.value_objects import ColumnType, ResultCode


EngineHandle = Any
"""Opaque connection handle returned by open()."""

ProgramHandle = Any
"""Opaque compiled-program handle returned by prepare()."""


class SQLEngine(Protocol):
    """Protocol for an embedded SQL engine.

    Thread Safety:
        None. A handle and its programs must be used from one thread of
        control at a time.
    """

    # Connection

    @abstractmethod
    def open(self, location: str) -> tuple[ResultCode, EngineHandle | None]:
        """Open a handle on the image stored at ``location``.

        Returns:
            ``(code, handle)``. On failure the handle may still be returned so
            that errmsg() can describe the problem; it must then be closed.
        """
        ...

    @abstractmethod
    def close(self, handle: EngineHandle) -> ResultCode:
        """Close a handle. Programs not yet finalized are finalized first."""
        ...

    @abstractmethod
    def errmsg(self, handle: EngineHandle) -> str:
        """Return the message describing the handle's most recent failure."""
        ...

    @abstractmethod
    def execute_script(self, handle: EngineHandle, sql: str) -> ResultCode:
        """Run every statement of ``sql`` in order, discarding rows.

        Stops at the first failure.
        """
        ...

    # Programs

    @abstractmethod
    def prepare(
        self, handle: EngineHandle, sql: str
    ) -> tuple[ResultCode, ProgramHandle | None, str]:
        """Compile the first statement of ``sql``.

        Returns:
            ``(code, program, tail)``. ``program`` is None when the first
            statement is empty (whitespace, comments or a lone ';').
            ``tail`` is the text following the compiled statement.
        """
        ...

    @abstractmethod
    def step(self, program: ProgramHandle) -> ResultCode:
        """Advance to the next row: ROW, DONE or an error code."""
        ...

    @abstractmethod
    def reset(self, program: ProgramHandle) -> ResultCode:
        """Rewind a program so it can be stepped again. Bindings are kept."""
        ...

    @abstractmethod
    def clear_bindings(self, program: ProgramHandle) -> ResultCode:
        """Set every parameter back to NULL."""
        ...

    @abstractmethod
    def finalize(self, program: ProgramHandle) -> ResultCode:
        """Destroy a program. The handle must not be used afterwards."""
        ...

    # Binding

    @abstractmethod
    def bind_int64(self, program: ProgramHandle, index: int, value: int) -> ResultCode:
        ...

    @abstractmethod
    def bind_double(self, program: ProgramHandle, index: int, value: float) -> ResultCode:
        ...

    @abstractmethod
    def bind_text(self, program: ProgramHandle, index: int, data: memoryview) -> ResultCode:
        """Bind UTF-8 encoded text. The engine copies ``data`` before returning."""
        ...

    @abstractmethod
    def bind_blob(self, program: ProgramHandle, index: int, data: memoryview) -> ResultCode:
        """Bind a blob. The engine copies ``data`` before returning."""
        ...

    @abstractmethod
    def bind_null(self, program: ProgramHandle, index: int) -> ResultCode:
        ...

    @abstractmethod
    def bind_parameter_count(self, program: ProgramHandle) -> int:
        """Return the largest parameter index used by the program."""
        ...

    @abstractmethod
    def bind_parameter_index(self, program: ProgramHandle, name: str) -> int:
        """Resolve a parameter name (sigil included) to its index, or 0."""
        ...

    # Columns

    @abstractmethod
    def column_count(self, program: ProgramHandle) -> int:
        """Return the number of result columns the program produces."""
        ...

    @abstractmethod
    def data_count(self, program: ProgramHandle) -> int:
        """Return the number of columns in the current row, 0 when there is none."""
        ...

    @abstractmethod
    def column_name(self, program: ProgramHandle, index: int) -> str:
        ...

    @abstractmethod
    def column_type(self, program: ProgramHandle, index: int) -> ColumnType:
        """Return the storage type of a column of the current row."""
        ...

    @abstractmethod
    def column_int64(self, program: ProgramHandle, index: int) -> int:
        ...

    @abstractmethod
    def column_double(self, program: ProgramHandle, index: int) -> float:
        ...

    @abstractmethod
    def column_text(self, program: ProgramHandle, index: int) -> str:
        ...

    @abstractmethod
    def column_blob(self, program: ProgramHandle, index: int) -> bytes:
        """Return a copy of a blob column; engine memory is never exposed."""
        ...
