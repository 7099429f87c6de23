"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for the systems the client layer depends
on: the SQL engine and the storage holding database images.
"""

from embedded_sql.ports.outbound.image_store import ImageStore
from embedded_sql.ports.outbound.sql_engine import EngineHandle, ProgramHandle, SQLEngine

__all__ = [
    "EngineHandle",
    "ImageStore",
    "ProgramHandle",
    "SQLEngine",
]
