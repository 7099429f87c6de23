"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Outbound ports: Dependencies on external systems (SQLEngine, ImageStore)

Adapters implement these ports with concrete functionality.
"""

from embedded_sql.ports.outbound import EngineHandle, ImageStore, ProgramHandle, SQLEngine

__all__ = [
    "EngineHandle",
    "ImageStore",
    "ProgramHandle",
    "SQLEngine",
]
