"""Lexical analysis of SQL text.

The engine compiles one statement at a time, so the client layer has to
find statement boundaries, number the parameters and recognise empty
statements on its own. All helpers here work on a token stream that knows
about string literals, quoted identifiers and comments, so that a ';' or a
':name' inside them is never mistaken for syntax.

Parameter numbering follows SQLite:
    - ``?`` takes the next free index
    - ``?NNN`` takes index NNN and raises the high-water mark
    - ``:VVV``, ``@VVV`` and ``$VVV`` take the next free index the first time
      the name is seen and reuse it afterwards; the sigil is part of the name

References:
    - https://www.sqlite.org/lang_expr.html#varparam
    - https://www.sqlite.org/c3ref/bind_parameter_index.html
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Literal

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from embedded_sql.domain.value_objects import StatementKind


MAX_VARIABLE_NUMBER = 32766

SplitMode = Literal["naive", "lexical"]


class TokenKind(Enum):
    """Token categories produced by ``tokenize``."""

    WHITESPACE = auto()
    COMMENT = auto()
    STRING = auto()
    IDENTIFIER = auto()
    PARAMETER = auto()
    SEMICOLON = auto()
    WORD = auto()
    OTHER = auto()


@dataclass(frozen=True, slots=True)
class Token:
    """A slice of SQL text."""

    kind: TokenKind
    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


_IDCHAR = "[0-9A-Za-z_$\u0080-\U0010ffff]"

# Order matters: earlier alternatives win.
_TOKEN_PATTERNS: list[tuple[TokenKind, str]] = [
    (TokenKind.WHITESPACE, r"\s+"),
    (TokenKind.COMMENT, r"--[^\n]*"),
    (TokenKind.COMMENT, r"/\*.*?(?:\*/|\Z)"),
    (TokenKind.STRING, r"'(?:[^']|'')*(?:'|\Z)"),
    (TokenKind.IDENTIFIER, r'"(?:[^"]|"")*(?:"|\Z)'),
    (TokenKind.IDENTIFIER, r"`(?:[^`]|``)*(?:`|\Z)"),
    (TokenKind.IDENTIFIER, r"\[[^\]]*(?:\]|\Z)"),
    (TokenKind.PARAMETER, r"\?[0-9]*"),
    (TokenKind.PARAMETER, r"[:@$]" + _IDCHAR + "+"),
    (TokenKind.SEMICOLON, r";"),
    (TokenKind.WORD, _IDCHAR + "+"),
    (TokenKind.OTHER, r"."),
]

_GROUP_KINDS = {f"t{i}": kind for i, (kind, _) in enumerate(_TOKEN_PATTERNS)}

_TOKEN_RE = re.compile(
    "|".join(f"(?P<t{i}>{pattern})" for i, (_, pattern) in enumerate(_TOKEN_PATTERNS)),
    re.DOTALL,
)

_TRIVIA = frozenset({TokenKind.WHITESPACE, TokenKind.COMMENT, TokenKind.SEMICOLON})


def tokenize(sql: str) -> Iterator[Token]:
    """Split SQL text into tokens covering every character exactly once.

    Unterminated strings, identifiers and block comments extend to the end
    of the text; rejecting them is left to the engine.
    """
    pos = 0
    while pos < len(sql):
        match = _TOKEN_RE.match(sql, pos)
        # The OTHER pattern matches any character, so a match always exists.
        assert match is not None and match.lastgroup is not None
        yield Token(_GROUP_KINDS[match.lastgroup], match.group(), pos)
        pos = match.end()


def is_blank(sql: str) -> bool:
    """Check whether SQL text holds nothing but whitespace, comments and semicolons."""
    return all(token.kind in _TRIVIA for token in tokenize(sql))


def split_first_statement(sql: str) -> tuple[str, str]:
    """Cut SQL text after its first complete statement.

    A ';' only ends a statement when the text up to it is complete, so
    semicolons inside trigger bodies stay in place.

    Returns:
        ``(head, tail)``; ``head`` keeps its terminating ';'. If no
        statement is terminated, ``head`` is the whole text and ``tail`` is empty.
    """
    for token in tokenize(sql):
        if token.kind is TokenKind.SEMICOLON and sqlite3.complete_statement(sql[: token.end]):
            return sql[: token.end], sql[token.end :]
    return sql, ""


def skip_empty_statements(sql: str) -> str:
    """Drop the empty statements (a bare ';' and its trivia) leading SQL text.

    Text made only of empty statements is returned from its last one, so
    the result is blank exactly when the input is.
    """
    head, tail = split_first_statement(sql)
    while tail and is_blank(head):
        sql = tail
        head, tail = split_first_statement(sql)
    return sql


def split_fragments(sql: str, mode: SplitMode = "naive") -> list[str]:
    """Cut a script into fragments for ``Database.exec``.

    ``naive`` splits on every ';', including ones inside string literals and
    comments. ``lexical`` splits after each complete statement.
    """
    if mode == "naive":
        return sql.split(";")
    if mode != "lexical":
        raise ValueError(f"Unknown split mode: {mode!r}")

    fragments: list[str] = []
    rest = sql
    while rest:
        head, rest = split_first_statement(rest)
        fragments.append(head)
    return fragments


@dataclass(frozen=True)
class ParameterMap:
    """Parameters of one statement.

    Attributes:
        rewritten: The statement with every parameter spelled ``?N``.
        count: Highest parameter index (the engine's parameter count).
        names: Parameter name (sigil included) to 1-based index.
    """

    rewritten: str
    count: int = 0
    names: dict[str, int] = field(default_factory=dict)

    def index_of(self, name: str) -> int:
        """Return the index bound to ``name``, or 0 if there is none."""
        return self.names.get(name, 0)


def scan_parameters(sql: str) -> ParameterMap:
    """Number the parameters of one statement.

    Out-of-range ``?NNN`` parameters are left untouched so that the engine
    reports them when compiling.
    """
    parts: list[str] = []
    names: dict[str, int] = {}
    count = 0

    for token in tokenize(sql):
        if token.kind is not TokenKind.PARAMETER:
            parts.append(token.text)
            continue

        name = token.text
        if name == "?":
            count += 1
            index = count
        elif name[0] == "?":
            index = int(name[1:])
            if not 1 <= index <= MAX_VARIABLE_NUMBER:
                parts.append(name)
                continue
            count = max(count, index)
            names.setdefault(name, index)
        elif name in names:
            index = names[name]
        else:
            count += 1
            index = count
            names[name] = index

        parts.append(f"?{index}")

    return ParameterMap(rewritten="".join(parts), count=count, names=names)


_KIND_BY_EXPRESSION: list[tuple[tuple[type[exp.Expression], ...], StatementKind]] = [
    ((exp.Select, exp.Union, exp.Intersect, exp.Except, exp.Values), StatementKind.QUERY),
    ((exp.Insert,), StatementKind.INSERT),
    ((exp.Update,), StatementKind.UPDATE),
    ((exp.Delete,), StatementKind.DELETE),
    ((exp.Create, exp.Drop), StatementKind.DDL),
    ((exp.Transaction, exp.Commit, exp.Rollback), StatementKind.TRANSACTION),
]


def classify_statement(sql: str, dialect: str = "sqlite") -> StatementKind:
    """Classify one statement with sqlglot.

    Parameters are replaced by NULL before parsing since sqlglot does not
    know every SQLite parameter spelling. Text sqlglot cannot parse is OTHER.
    """
    text = "".join(
        "NULL" if token.kind is TokenKind.PARAMETER else token.text for token in tokenize(sql)
    )
    if is_blank(text):
        return StatementKind.OTHER

    try:
        expression = sqlglot.parse_one(text, read=dialect)
    except SqlglotError:
        return StatementKind.OTHER

    for types, kind in _KIND_BY_EXPRESSION:
        if isinstance(expression, types):
            return kind
    return StatementKind.OTHER
