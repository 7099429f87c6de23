"""REST API adapter for embedded SQL databases.

This module provides a FastAPI-based REST API serving one open Database.

Endpoints:
    GET /health - Health check
    GET /stats - Database statistics
    POST /exec - Execute a script and return the rows of every fragment
    POST /run - Execute SQL, optionally with bound parameters
    GET /export - Download the current database image

Blobs cannot travel as JSON strings, so they are exchanged as
``{"base64": "<data>"}`` objects, both in results and in parameters.

Usage:
    from embedded_sql import Database
    from embedded_sql.adapters.inbound.rest_api import create_app

    db = Database()
    app = create_app(db)
    # Run with uvicorn: uvicorn app:app --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from embedded_sql import __version__
from embedded_sql.application import Database
from embedded_sql.domain.errors import EngineError, UsageError
from embedded_sql.domain.value_objects import QueryResult, SQLValue
from embedded_sql.infrastructure.config import Config, get_config
from embedded_sql.infrastructure.logging import get_logger, setup_logging
from embedded_sql.infrastructure.metrics import setup_metrics
from embedded_sql.infrastructure.tracing import setup_tracing


BLOB_KEY = "base64"

logger = get_logger(__name__)


class ExecRequest(BaseModel):
    """Request model for script execution."""

    sql: str = Field(..., description="SQL script; fragments are separated by ';'")


class RunRequest(BaseModel):
    """Request model for running SQL."""

    sql: str = Field(..., description="SQL text")
    params: list[Any] | dict[str, Any] | None = Field(
        None, description="Positional list or name to value mapping (sigil included)"
    )


class QueryResultModel(BaseModel):
    """Rows produced by one script fragment."""

    columns: list[str] = Field(default_factory=list, description="Column names")
    values: list[list[Any]] = Field(default_factory=list, description="Result rows")


class ExecResponse(BaseModel):
    """Response model for script execution."""

    results: list[QueryResultModel] = Field(
        default_factory=list, description="One entry per fragment that produced rows"
    )


class RunResponse(BaseModel):
    """Response model for running SQL."""

    success: bool = Field(..., description="Whether the SQL ran")


class StatsResponse(BaseModel):
    """Response model for database statistics."""

    location: str = Field(..., description="Backing image location")
    closed: bool = Field(..., description="Whether the database is closed")
    script_split: str = Field(..., description="How exec() cuts scripts into fragments")
    statements: dict[str, Any] = Field(default_factory=dict, description="Statement stats")
    transient_memory: dict[str, int] = Field(
        default_factory=dict, description="Outstanding bound buffers"
    )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")


class ErrorResponse(BaseModel):
    """Response model for failed requests."""

    error: str = Field(..., description="Error class")
    message: str = Field(..., description="Error message")
    code: int | None = Field(None, description="Engine result code")


def encode_value(value: SQLValue) -> Any:
    """Convert a column value to JSON, wrapping blobs."""
    if isinstance(value, bytes):
        return {BLOB_KEY: base64.b64encode(value).decode("ascii")}
    return value


def decode_value(value: Any) -> Any:
    """Convert a JSON parameter to a bindable value, unwrapping blobs."""
    if isinstance(value, dict) and set(value) == {BLOB_KEY}:
        try:
            return base64.b64decode(value[BLOB_KEY], validate=True)
        except (binascii.Error, TypeError) as e:
            raise UsageError(f"invalid base64 blob: {e}") from e
    return value


def _result_to_model(result: QueryResult) -> QueryResultModel:
    return QueryResultModel(
        columns=result.columns,
        values=[[encode_value(value) for value in row] for row in result.values],
    )


def _decode_params(params: list[Any] | dict[str, Any] | None) -> Any:
    if params is None:
        return None
    if isinstance(params, dict):
        return {name: decode_value(value) for name, value in params.items()}
    return [decode_value(value) for value in params]


def create_app(db: Database) -> FastAPI:
    """Create a FastAPI application serving a database.

    Args:
        db: The open database to serve.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="Embedded SQL API",
        description="REST API for running SQL against an embedded database",
        version=__version__,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        logger.warning("request_failed", path=request.url.path, error=exc.message, code=exc.code)
        body = ErrorResponse(error=type(exc).__name__, message=exc.message, code=exc.code)
        return JSONResponse(status_code=422, content=body.model_dump())

    @app.exception_handler(UsageError)
    async def usage_error_handler(request: Request, exc: UsageError) -> JSONResponse:
        logger.warning("request_rejected", path=request.url.path, error=str(exc))
        body = ErrorResponse(error=type(exc).__name__, message=str(exc))
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="unhealthy" if db.closed else "healthy",
            version=__version__,
        )

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats() -> StatsResponse:
        """Get database statistics."""
        if db.closed:
            raise HTTPException(status_code=503, detail="Database closed")
        return StatsResponse(**db.get_stats())

    @app.post("/exec", response_model=ExecResponse, tags=["SQL"])
    async def exec_sql(request: ExecRequest) -> ExecResponse:
        """Execute a script and return the rows of every fragment."""
        results = db.exec(request.sql)
        return ExecResponse(results=[_result_to_model(result) for result in results])

    @app.post("/run", response_model=RunResponse, tags=["SQL"])
    async def run_sql(request: RunRequest) -> RunResponse:
        """Execute SQL, discarding rows."""
        db.run(request.sql, _decode_params(request.params))
        return RunResponse(success=True)

    @app.get("/export", tags=["Image"])
    async def export_image() -> Response:
        """Download the current database image."""
        return Response(content=db.export(), media_type="application/vnd.sqlite3")

    return app


def run_server(
    db: Database,
    host: str = "127.0.0.1",
    port: int = 8000,
    config: Config | None = None,
) -> None:
    """Run the REST API server.

    Sets up logging and tracing, and the metrics endpoint when enabled.

    Args:
        db: The database to serve.
        host: Host to bind to.
        port: Port to bind to.
        config: Configuration (default: the global one).
    """
    import uvicorn

    config = config or get_config()
    observability = config.observability
    setup_logging(observability)
    setup_tracing(
        service_name=observability.otel_service_name,
        otlp_endpoint=observability.otel_endpoint,
    )
    if config.server.metrics_enabled:
        setup_metrics(config.server.metrics_port)

    logger.info("server_starting", host=host, port=port, location=db.location)
    app = create_app(db)
    uvicorn.run(app, host=host, port=port)


def main() -> None:
    """Entry point of the ``embedded-sql-server`` command."""
    config = get_config()
    seed = config.server.seed_image
    image = seed.read_bytes() if seed is not None else None

    with Database(image, config=config) as db:
        run_server(db, config.server.host, config.server.port, config)


if __name__ == "__main__":
    main()
