"""Inbound adapters for embedded SQL.

Inbound adapters handle incoming requests and convert them to
Database operations.

Exports:
    REST API:
        - create_app: Create a FastAPI application serving a database
        - run_server: Run the REST API server
        - main: Entry point of the embedded-sql-server command
"""

from embedded_sql.adapters.inbound.rest_api import (
    ExecRequest,
    ExecResponse,
    RunRequest,
    RunResponse,
    create_app,
    main,
    run_server,
)

__all__ = [
    "create_app",
    "run_server",
    "main",
    "ExecRequest",
    "ExecResponse",
    "RunRequest",
    "RunResponse",
]
