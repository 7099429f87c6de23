"""Typed values exchanged with the engine.

A Value is a closed tagged variant over the engine's storage classes.
Callers can build one explicitly (``Value.real(3.0)``) or let
``Value.from_python`` pick the kind from a plain Python object.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from embedded_sql.domain.errors import UnknownTypeError, UsageError


INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

SQLValue = Union[int, float, str, bytes, None]
"""A decoded column value. Each Python type corresponds to exactly one ValueKind."""


class ValueKind(Enum):
    """Storage classes a value can be bound or decoded as."""

    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    BLOB = "blob"
    NULL = "null"


def fits_int64(number: int) -> bool:
    """Check whether an integer fits the engine's native 64-bit width."""
    return INT64_MIN <= number <= INT64_MAX


@dataclass(frozen=True, slots=True)
class Value:
    """A typed value.

    Attributes:
        kind: The storage class.
        data: The payload; ``int``, ``float``, ``str``, ``bytes`` or ``None``
            matching ``kind``.

    Example:
        >>> Value.from_python(True)
        Value(kind=<ValueKind.INTEGER: 'integer'>, data=1)
        >>> Value.from_python(2.5).kind
        <ValueKind.FLOAT: 'float'>
    """

    kind: ValueKind
    data: SQLValue = field(default=None)

    @classmethod
    def integer(cls, number: int) -> Value:
        if not fits_int64(number):
            raise UsageError(f"integer {number} does not fit in 64 bits")
        return cls(ValueKind.INTEGER, int(number))

    @classmethod
    def real(cls, number: float) -> Value:
        return cls(ValueKind.FLOAT, float(number))

    @classmethod
    def text(cls, string: str) -> Value:
        return cls(ValueKind.TEXT, str(string))

    @classmethod
    def blob(cls, data: bytes | bytearray | memoryview) -> Value:
        return cls(ValueKind.BLOB, bytes(data))

    @classmethod
    def null(cls) -> Value:
        return cls(ValueKind.NULL, None)

    @classmethod
    def from_python(cls, value: Any) -> Value:
        """Pick the storage class for a plain Python object.

        Numbers bind as INTEGER when they have no fractional part and fit in
        64 bits, otherwise as FLOAT. Booleans bind as 0/1.

        Raises:
            UnknownTypeError: If the object has no storage class.
        """
        if isinstance(value, Value):
            return value
        if value is None:
            return cls.null()
        if isinstance(value, str):
            return cls.text(value)
        if isinstance(value, bool):
            return cls(ValueKind.INTEGER, int(value))
        if isinstance(value, int):
            if fits_int64(value):
                return cls(ValueKind.INTEGER, value)
            return cls(ValueKind.FLOAT, float(value))
        if isinstance(value, float):
            if math.isfinite(value) and value.is_integer() and fits_int64(int(value)):
                return cls(ValueKind.INTEGER, int(value))
            return cls(ValueKind.FLOAT, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls.blob(value)
        if isinstance(value, (list, tuple)):
            try:
                return cls.blob(bytes(value))
            except (TypeError, ValueError) as e:
                raise UnknownTypeError(value) from e
        raise UnknownTypeError(value)

    def to_python(self) -> SQLValue:
        """Return the plain Python payload."""
        return self.data


@dataclass
class QueryResult:
    """Rows produced by one script fragment passed to ``Database.exec``.

    Attributes:
        columns: Column names in result order.
        values: One list of decoded values per row, aligned with ``columns``.
    """

    columns: list[str]
    values: list[list[SQLValue]] = field(default_factory=list)

    def as_dicts(self) -> list[dict[str, SQLValue]]:
        """Return rows as name to value mappings (later duplicate names win)."""
        return [dict(zip(self.columns, row)) for row in self.values]
