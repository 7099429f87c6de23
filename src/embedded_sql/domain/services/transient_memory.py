"""Caller-owned buffers handed to the engine while parameters are bound.

Each statement owns one tracker. Binding text or a blob copies the encoded
bytes into a TransientBuffer; the buffer stays valid until the statement's
next reset() or free(), which release every buffer at once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable


@dataclass(eq=False, slots=True)
class TransientBuffer:
    """One allocation handed to the engine.

    Attributes:
        data: The owned bytes. Emptied on release.
        released: Whether the owning tracker has released the buffer.
    """

    data: bytearray
    released: bool = False

    def __len__(self) -> int:
        return len(self.data)

    def view(self) -> memoryview:
        """Return a read-only view of the buffer contents."""
        if self.released:
            raise ValueError("Buffer has been released")
        return memoryview(self.data).toreadonly()


@dataclass
class TransientMemoryTracker:
    """Tracks the buffers allocated for one statement's bindings.

    Example:
        >>> tracker = TransientMemoryTracker()
        >>> buffer = tracker.allocate("héllo".encode("utf-8"))
        >>> tracker.outstanding, tracker.outstanding_bytes
        (1, 6)
        >>> tracker.release_all()
        1
        >>> tracker.outstanding
        0
    """

    on_change: Callable[[int, int], None] | None = None
    """Called with (buffer delta, byte delta) after every allocation and release."""

    _buffers: list[TransientBuffer] = field(default_factory=list)
    _allocated_total: int = 0

    @property
    def outstanding(self) -> int:
        """Number of buffers not yet released."""
        return len(self._buffers)

    @property
    def outstanding_bytes(self) -> int:
        """Total size of the buffers not yet released."""
        return sum(len(buffer) for buffer in self._buffers)

    @property
    def allocated_total(self) -> int:
        """Number of buffers allocated over the tracker's lifetime."""
        return self._allocated_total

    def allocate(self, data: bytes | bytearray | memoryview) -> TransientBuffer:
        """Copy ``data`` into a new tracked buffer."""
        buffer = TransientBuffer(bytearray(data))
        self._buffers.append(buffer)
        self._allocated_total += 1
        if self.on_change is not None:
            self.on_change(1, len(buffer))
        return buffer

    def release_all(self) -> int:
        """Release every outstanding buffer.

        Returns:
            The number of buffers released.
        """
        released = 0
        released_bytes = 0
        while self._buffers:
            buffer = self._buffers.pop()
            released_bytes += len(buffer)
            # Rebind rather than clear(): a live memoryview would block resizing.
            buffer.data = bytearray()
            buffer.released = True
            released += 1

        if released and self.on_change is not None:
            self.on_change(-released, -released_bytes)
        return released
