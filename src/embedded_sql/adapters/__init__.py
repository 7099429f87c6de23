"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: Handle incoming requests (REST)
- Outbound adapters: Implement external dependencies (SQL engine, image files)
"""

from embedded_sql.adapters.outbound import (
    FileImageStore,
    SQLiteEngine,
)

__all__ = [
    # Outbound adapters
    "FileImageStore",
    "SQLiteEngine",
]
