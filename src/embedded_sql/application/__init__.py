"""Application layer - the Database and Statement client API."""

from embedded_sql.application.database import Database
from embedded_sql.application.statement import Statement

__all__ = [
    "Database",
    "Statement",
]
