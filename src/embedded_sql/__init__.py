"""
Embedded SQL - statement-oriented client API over an in-process SQL engine

Open a database image, compile SQL into prepared statements, bind typed
parameters, step through result rows and decode typed columns.
"""

__version__ = "0.1.0"

from embedded_sql.application import Database, Statement
from embedded_sql.domain.errors import (
    ClosedError,
    CompileError,
    EmbeddedSQLError,
    EngineError,
    NothingToPrepareError,
    UnknownTypeError,
    UsageError,
)
from embedded_sql.domain.value_objects import QueryResult, SQLValue, Value, ValueKind

__all__ = [
    "__version__",
    "Database",
    "Statement",
    "QueryResult",
    "SQLValue",
    "Value",
    "ValueKind",
    "EmbeddedSQLError",
    "EngineError",
    "CompileError",
    "UsageError",
    "ClosedError",
    "NothingToPrepareError",
    "UnknownTypeError",
]
