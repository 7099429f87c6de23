"""Domain services for embedded SQL.

Exports:
    SQL text:
        - tokenize, Token, TokenKind: Literal- and comment-aware SQL lexer
        - is_blank: Detect text with no statement in it
        - split_first_statement: Cut text after its first complete statement
        - skip_empty_statements: Drop leading empty statements
        - split_fragments: Cut a script into exec() fragments
        - scan_parameters, ParameterMap: SQLite parameter numbering
        - classify_statement: Statement kind via sqlglot

    Transient memory:
        - TransientMemoryTracker: Per-statement buffers for bound text/blobs
        - TransientBuffer: One tracked allocation
"""

from embedded_sql.domain.services.sql_text import (
    MAX_VARIABLE_NUMBER,
    ParameterMap,
    SplitMode,
    Token,
    TokenKind,
    classify_statement,
    is_blank,
    scan_parameters,
    skip_empty_statements,
    split_first_statement,
    split_fragments,
    tokenize,
)
from embedded_sql.domain.services.transient_memory import (
    TransientBuffer,
    TransientMemoryTracker,
)

__all__ = [
    # SQL text
    "MAX_VARIABLE_NUMBER",
    "ParameterMap",
    "SplitMode",
    "Token",
    "TokenKind",
    "classify_statement",
    "is_blank",
    "scan_parameters",
    "skip_empty_statements",
    "split_first_statement",
    "split_fragments",
    "tokenize",
    # Transient memory
    "TransientBuffer",
    "TransientMemoryTracker",
]
