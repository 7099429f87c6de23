"""Outbound adapters - implementations of outbound ports.

These adapters implement the SQL engine on top of the standard library
sqlite3 module and keep database images in files.
"""

from embedded_sql.adapters.outbound.file_image_store import FileImageStore
from embedded_sql.adapters.outbound.sqlite_engine import SQLiteEngine, SQLiteHandle, SQLiteProgram

__all__ = [
    "FileImageStore",
    "SQLiteEngine",
    "SQLiteHandle",
    "SQLiteProgram",
]
