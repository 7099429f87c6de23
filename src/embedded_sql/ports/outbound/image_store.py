"""Image Store port: byte-level persistence behind a database.

The engine opens databases by location. The image store provides those
locations, seeds them from an initial image and reads the current image
back for export.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol


class ImageStore(Protocol):
    """Protocol for the storage substrate holding database images."""

    @abstractmethod
    def create(self, image: bytes | None = None) -> str:
        """Create a new location, seeded with ``image`` if given.

        Returns:
            The location to hand to the engine's open().

        Raises:
            OSError: If the location cannot be created.
        """
        ...

    @abstractmethod
    def read(self, location: str) -> bytes:
        """Return the current image stored at ``location``.

        Raises:
            FileNotFoundError: If the location was removed.
        """
        ...

    @abstractmethod
    def remove(self, location: str) -> None:
        """Delete a location. Removing a missing location is not an error."""
        ...
