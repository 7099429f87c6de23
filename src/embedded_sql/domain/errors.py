"""Error taxonomy for embedded SQL.

Engine statuses are translated into EngineError (or CompileError) at the
call site that triggered them. Caller mistakes raise UsageError subclasses.
"""

from __future__ import annotations


class EmbeddedSQLError(Exception):
    """Base class for every error raised by this library."""


class EngineError(EmbeddedSQLError):
    """The engine returned a non-success status.

    Attributes:
        code: The engine's numeric result code.
        message: The engine's current error message.
    """

    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class CompileError(EngineError):
    """The engine could not compile a statement."""


class UsageError(EmbeddedSQLError):
    """The API was used incorrectly."""


class ClosedError(UsageError):
    """Operation on a closed database or statement."""


class NothingToPrepareError(UsageError):
    """The SQL text contains no compilable statement."""

    def __init__(self, message: str = "nothing to prepare") -> None:
        super().__init__(message)


class UnknownTypeError(UsageError):
    """A value of an unsupported kind was bound."""

    def __init__(self, value: object) -> None:
        super().__init__(f"tried to bind a value of an unknown type ({value!r})")
        self.value = value
