"""Value objects for embedded SQL.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Values:
        - Value: Tagged variant over INTEGER, FLOAT, TEXT, BLOB and NULL
        - ValueKind: The variant tags
        - SQLValue: Plain Python type of a decoded column
        - QueryResult: Columns and rows produced by one exec() fragment

    Identifiers:
        - StatementId: Registry slot of a prepared statement

    Statement Types:
        - StatementState: Prepared statement lifecycle states
        - StatementKind: Query/insert/update/delete/ddl/transaction/other
        - ResultCode: Engine status codes
        - ColumnType: Engine storage type of a column value
"""

from embedded_sql.domain.value_objects.identifiers import StatementId
from embedded_sql.domain.value_objects.statement_types import (
    ColumnType,
    ResultCode,
    StatementKind,
    StatementState,
)
from embedded_sql.domain.value_objects.values import (
    INT64_MAX,
    INT64_MIN,
    QueryResult,
    SQLValue,
    Value,
    ValueKind,
    fits_int64,
)

__all__ = [
    # Values
    "Value",
    "ValueKind",
    "SQLValue",
    "QueryResult",
    "INT64_MIN",
    "INT64_MAX",
    "fits_int64",
    # Identifiers
    "StatementId",
    # Statement types
    "StatementState",
    "StatementKind",
    "ResultCode",
    "ColumnType",
]
