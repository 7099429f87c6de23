"""Statement lifecycle states, statement kinds and engine status codes."""

from __future__ import annotations

from enum import Enum, IntEnum, auto


class StatementState(Enum):
    """Prepared statement lifecycle.

        OPEN_UNBOUND ──bind()──> OPEN_BOUND ──step()──> STEPPING
              ^                                          │  ^
              │                                   step() │  │ step()
              └───────────── reset() ────────────────    v  │
                                                      EXHAUSTED

        free() (or Database.close()) from any state ──> CLOSED

    reset() returns every open state to OPEN_UNBOUND. CLOSED is terminal.
    """

    OPEN_UNBOUND = auto()
    """Compiled, no parameters bound since the last reset."""

    OPEN_BOUND = auto()
    """Parameters bound, not stepped yet."""

    STEPPING = auto()
    """The last step() produced a row."""

    EXHAUSTED = auto()
    """The last step() reported that no more rows are available."""

    CLOSED = auto()
    """Finalized. Every further operation fails."""

    def is_open(self) -> bool:
        return self is not StatementState.CLOSED


class StatementKind(Enum):
    """Coarse classification of a compiled statement."""

    QUERY = "query"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    DDL = "ddl"
    TRANSACTION = "transaction"
    OTHER = "other"

    @property
    def is_read_only(self) -> bool:
        return self is StatementKind.QUERY


class ResultCode(IntEnum):
    """Engine status codes (SQLite numbering)."""

    OK = 0
    ERROR = 1
    INTERNAL = 2
    BUSY = 5
    LOCKED = 6
    NOMEM = 7
    READONLY = 8
    IOERR = 10
    CORRUPT = 11
    CONSTRAINT = 19
    MISMATCH = 20
    MISUSE = 21
    RANGE = 25
    NOTADB = 26
    ROW = 100
    DONE = 101


class ColumnType(IntEnum):
    """Runtime storage type of a column value (SQLite numbering)."""

    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5
