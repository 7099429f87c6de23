"""Database - entry point for running SQL against an embedded engine.

A Database owns one engine handle opened on a backing image and the
registry of statements prepared on it. Scripts can be run in one call, or
compiled into statements that are driven row by row.

Usage:
    from embedded_sql import Database

    with Database() as db:
        db.run("CREATE TABLE users (id INTEGER, name TEXT)")
        db.run("INSERT INTO users VALUES (?, ?)", [1, "Alice"])

        results = db.exec("SELECT id FROM users; SELECT name FROM users")
        # [QueryResult(columns=['id'], values=[[1]]),
        #  QueryResult(columns=['name'], values=[['Alice']])]

        db.each("SELECT * FROM users WHERE id = $id", {"$id": 1}, print)

        image = db.export()

    # Reopen from the exported bytes
    copy = Database(image)
"""

from __future__ import annotations

import itertools
import time
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from embedded_sql.application.statement import Statement
from embedded_sql.domain.errors import (
    ClosedError,
    CompileError,
    EmbeddedSQLError,
    EngineError,
    NothingToPrepareError,
    UsageError,
)
from embedded_sql.domain.services import (
    classify_statement,
    skip_empty_statements,
    split_fragments,
)
from embedded_sql.domain.value_objects import (
    QueryResult,
    ResultCode,
    SQLValue,
    StatementId,
    StatementState,
)
from embedded_sql.infrastructure.config import Config
from embedded_sql.infrastructure.container import build_container, get_container
from embedded_sql.infrastructure.logging import get_logger
from embedded_sql.infrastructure.metrics import MetricsRegistry
from embedded_sql.infrastructure.tracing import trace_span
from embedded_sql.ports.outbound import EngineHandle, ImageStore, SQLEngine


RowCallback = Callable[[dict[str, SQLValue]], Any]

# Longest statement text attached to trace spans
_SPAN_SQL_LIMIT = 256


def _release_abandoned(
    engine: SQLEngine,
    handle: EngineHandle,
    image_store: ImageStore,
    location: str,
    metrics: MetricsRegistry,
) -> None:
    """Release a database that was garbage collected without close()."""
    engine.close(handle)
    image_store.remove(location)
    metrics.databases_open.dec()
    get_logger(__name__).warning("database_not_closed", location=location)


class Database:
    """An open database and the statements prepared on it.

    Collaborators left unset are resolved from the dependency container:
    the global one, or one built from ``config`` when a config is given.

    A database garbage collected without close() still has its engine
    handle closed and its backing image removed.

    Thread Safety:
        None. Each thread of control should open its own Database.
    """

    def __init__(
        self,
        image: bytes | bytearray | memoryview | None = None,
        *,
        engine: SQLEngine | None = None,
        image_store: ImageStore | None = None,
        config: Config | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Open a database.

        Args:
            image: Initial database image. An empty database if None.
            engine: SQL engine (default from container).
            image_store: Backing image storage (default from container).
            config: Configuration (default from container).
            metrics: Metrics registry (default from container).

        Raises:
            EngineError: If the engine cannot open the image.
        """
        if engine is None or image_store is None or config is None or metrics is None:
            container = build_container(config) if config is not None else get_container()
            engine = engine if engine is not None else container.resolve(SQLEngine)
            image_store = image_store if image_store is not None else container.resolve(ImageStore)
            config = config if config is not None else container.resolve(Config)
            metrics = metrics if metrics is not None else container.resolve(MetricsRegistry)

        self._engine = engine
        self._image_store = image_store
        self._config = config
        self._metrics = metrics
        self._logger = get_logger(__name__)

        self._statements: dict[StatementId, Statement] = {}
        self._next_id = itertools.count(1)
        self._handle: EngineHandle | None = None

        self._location = image_store.create(bytes(image) if image is not None else None)
        code, handle = engine.open(self._location)
        if code != ResultCode.OK:
            if handle is not None:
                message = engine.errmsg(handle)
                engine.close(handle)
            else:
                message = f"unable to open database (code {int(code)})"
            image_store.remove(self._location)
            metrics.engine_errors_total.labels(operation="open").inc()
            raise EngineError(message, int(code))

        self._handle = handle
        self._finalizer = weakref.finalize(
            self, _release_abandoned, engine, handle, image_store, self._location, metrics
        )
        metrics.databases_open.inc()
        self._logger.info(
            "database_opened",
            location=self._location,
            seeded=image is not None,
        )

    @classmethod
    def open(cls, image: bytes | bytearray | memoryview | None = None, **kwargs: Any) -> Database:
        """Open a database; same arguments as the constructor."""
        return cls(image, **kwargs)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if not self.closed:
            self.close()

    def __repr__(self) -> str:
        status = "closed" if self.closed else f"{len(self._statements)} statements"
        return f"Database({self._location!r}, {status})"

    @property
    def closed(self) -> bool:
        return self._handle is None

    @property
    def location(self) -> str:
        """Backing image location in the image store."""
        return self._location

    @property
    def open_statements(self) -> int:
        """Number of prepared statements not yet freed."""
        return len(self._statements)

    # Running SQL

    def run(self, sql: str, params: Any = None) -> Database:
        """Execute SQL, discarding any rows.

        Without ``params`` every statement in ``sql`` is executed. With
        ``params`` only the first statement is compiled, bound and stepped once.

        Returns:
            The database, for chaining.

        Raises:
            ClosedError: If the database is closed.
            EngineError: If the engine fails.
        """
        self._ensure_open()
        with self._measure("run", sql):
            if params is None:
                self._check(self._engine.execute_script(self._handle, sql), "exec")
            else:
                statement = self.prepare(sql, params)
                try:
                    statement.step()
                finally:
                    statement.free()
        return self

    def exec(self, sql: str) -> list[QueryResult]:
        """Execute a script and collect the rows of every fragment.

        The script is cut on ';' (see ``engine.script_split``). Fragments
        without a statement are skipped; fragments producing no rows add no
        result. The first failing fragment aborts the call and the results
        gathered so far are discarded.

        Example:
            >>> db.exec("SELECT 1; SELECT 2, 3;")
            [QueryResult(columns=['1'], values=[[1]]), QueryResult(columns=['2', '3'], values=[[2, 3]])]
        """
        self._ensure_open()
        results: list[QueryResult] = []
        with self._measure("exec", sql):
            for fragment in split_fragments(sql, self._config.engine.script_split):
                try:
                    statement = self.prepare(fragment)
                except NothingToPrepareError:
                    continue

                try:
                    result: QueryResult | None = None
                    while statement.step():
                        if result is None:
                            result = QueryResult(columns=statement.get_column_names())
                            results.append(result)
                        result.values.append(statement.get())
                finally:
                    statement.free()
        return results

    def each(
        self,
        sql: str,
        params: Any = None,
        callback: RowCallback | None = None,
        done: Callable[[], Any] | None = None,
    ) -> Database:
        """Call ``callback`` with every row of the first statement in ``sql``.

        Rows are passed as column name to value mappings. ``params`` may be
        omitted: ``db.each(sql, callback, done)``. The statement is freed
        before ``done`` is called, and also when the callback raises.

        Returns:
            The database, for chaining.
        """
        if callable(params):
            params, callback, done = None, params, callback
        if callback is None:
            raise UsageError("each() needs a row callback")

        self._ensure_open()
        with self._measure("each", sql):
            statement = self.prepare(sql, params)
            try:
                while statement.step():
                    callback(statement.get_as_object())
            finally:
                statement.free()

        if done is not None:
            done()
        return self

    def iterate(self, sql: str, params: Any = None) -> Iterator[dict[str, SQLValue]]:
        """Yield every row of the first statement in ``sql`` as a mapping.

        The statement is prepared on the first ``next()`` and freed when the
        generator is exhausted or closed.
        """
        self._ensure_open()
        statement = self.prepare(sql, params)
        try:
            while statement.step():
                yield statement.get_as_object()
        finally:
            if not statement.closed:
                statement.free()

    def prepare(self, sql: str, params: Any = None) -> Statement:
        """Compile the first statement in ``sql``.

        Args:
            sql: SQL text. Anything after the first statement is ignored.
            params: Optional values bound right away (see Statement.bind).

        Raises:
            ClosedError: If the database is closed.
            NothingToPrepareError: If ``sql`` holds no statement.
            CompileError: If the engine cannot compile the statement.
        """
        self._ensure_open()
        with trace_span("database.prepare", {"db.statement": sql[:_SPAN_SQL_LIMIT]}):
            code, program, tail = self._engine.prepare(self._handle, sql)
            if code != ResultCode.OK:
                raise self._error(code, "prepare", CompileError)
            if program is None:
                raise NothingToPrepareError()

            text = skip_empty_statements(sql[: len(sql) - len(tail)] if tail else sql)
            kind = classify_statement(text)
            statement = Statement(
                statement_id=StatementId(next(self._next_id)),
                database=self,
                engine=self._engine,
                program=program,
                sql=text,
                kind=kind,
                metrics=self._metrics,
            )
            if params is not None:
                try:
                    statement.bind(params)
                except Exception:
                    statement.free()
                    raise

            self._statements[statement.id] = statement

        self._metrics.statements_open.inc()
        self._metrics.statements_prepared_total.labels(kind=kind.value).inc()
        self._logger.debug("statement_prepared", statement_id=statement.id, kind=kind.value)
        return statement

    # Image and lifecycle

    def export(self) -> bytes:
        """Return the current database image.

        Raises:
            ClosedError: If the database is closed.
        """
        self._ensure_open()
        return self._image_store.read(self._location)

    def close(self) -> None:
        """Free every statement, close the engine handle and drop the image.

        A statement that fails to finalize does not stop the others from
        being freed; the first failure is raised once everything is released.

        Raises:
            ClosedError: If the database was already closed.
            EngineError: If a statement or the handle failed to close.
        """
        if self._handle is None:
            raise ClosedError("already closed")
        self._finalizer.detach()

        first_error: EmbeddedSQLError | None = None
        freed = 0
        for statement in list(self._statements.values()):
            try:
                statement.free()
            except EmbeddedSQLError as e:
                self._logger.warning(
                    "statement_finalize_failed",
                    statement_id=statement.id,
                    error=str(e),
                )
                if first_error is None:
                    first_error = e
            freed += 1

        code = self._engine.close(self._handle)
        if code != ResultCode.OK and first_error is None:
            first_error = self._error(code, "close")

        self._handle = None
        self._image_store.remove(self._location)
        self._metrics.databases_open.dec()
        self._logger.info("database_closed", location=self._location, statements_freed=freed)

        if first_error is not None:
            raise first_error

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with lifecycle and statement statistics.
        """
        states = {state.name.lower(): 0 for state in StatementState if state.is_open()}
        for statement in self._statements.values():
            states[statement.state.name.lower()] += 1

        return {
            "location": self._location,
            "closed": self.closed,
            "script_split": self._config.engine.script_split,
            "statements": {
                "open": len(self._statements),
                "by_state": states,
            },
            "transient_memory": {
                "buffers": sum(s.transient_memory.outstanding for s in self._statements.values()),
                "bytes": sum(
                    s.transient_memory.outstanding_bytes for s in self._statements.values()
                ),
            },
        }

    # Internals used by Statement

    def _check(self, code: int, operation: str) -> None:
        if code != ResultCode.OK:
            raise self._error(code, operation)

    def _error(
        self,
        code: int,
        operation: str,
        error_type: type[EngineError] = EngineError,
    ) -> EngineError:
        self._metrics.engine_errors_total.labels(operation=operation).inc()
        if self._handle is None:
            return error_type("database closed", int(code))
        return error_type(self._engine.errmsg(self._handle), int(code))

    def _unregister(self, statement: Statement) -> None:
        if self._statements.pop(statement.id, None) is not None:
            self._metrics.statements_open.dec()
            self._logger.debug("statement_freed", statement_id=statement.id)

    def _ensure_open(self) -> None:
        if self._handle is None:
            raise ClosedError("database closed")

    @contextmanager
    def _measure(self, operation: str, sql: str) -> Iterator[None]:
        start = time.perf_counter()
        status = "error"
        attributes = {"db.operation": operation, "db.statement": sql[:_SPAN_SQL_LIMIT]}
        try:
            with trace_span(f"database.{operation}", attributes):
                yield
            status = "success"
        finally:
            self._metrics.query_latency_seconds.labels(operation=operation).observe(
                time.perf_counter() - start
            )
            self._metrics.queries_total.labels(operation=operation, status=status).inc()
