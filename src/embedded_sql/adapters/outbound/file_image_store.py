"""File-based Image Store implementation.

Every database lives in its own file inside a single directory. Files are
created with a random name so that several databases can share the
directory, and removed when the database is closed.

Thread Safety:
    create() and remove() are safe to call concurrently. read() sees
    whatever the engine has flushed to the file.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from embedded_sql.infrastructure.config import get_config


class FileImageStore:
    """File-based implementation of the ImageStore protocol.

    Attributes:
        directory: Directory holding the database files.
        prefix: File name prefix of created files.
    """

    def __init__(self, directory: str | Path | None = None, prefix: str | None = None) -> None:
        """Initialize the image store.

        Args:
            directory: Directory for database files (default from config).
            prefix: File name prefix (default from config).
        """
        storage = get_config().storage
        self._directory = Path(directory) if directory is not None else storage.image_dir
        self._prefix = prefix if prefix is not None else storage.file_prefix
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def prefix(self) -> str:
        return self._prefix

    def create(self, image: bytes | None = None) -> str:
        fd, path = tempfile.mkstemp(prefix=self._prefix, suffix=".sqlite", dir=self._directory)
        with os.fdopen(fd, "wb") as f:
            if image:
                f.write(image)
                f.flush()
                os.fsync(f.fileno())
        return path

    def read(self, location: str) -> bytes:
        return Path(location).read_bytes()

    def remove(self, location: str) -> None:
        Path(location).unlink(missing_ok=True)
