"""Unit tests for the transient memory tracker."""

from __future__ import annotations

import pytest

from embedded_sql.domain.services import TransientMemoryTracker


@pytest.mark.unit
class TestTransientMemoryTracker:
    """Tests for TransientMemoryTracker."""

    def test_allocate_copies_data(self) -> None:
        tracker = TransientMemoryTracker()
        source = bytearray(b"abc")
        buffer = tracker.allocate(source)
        source[0] = ord("z")

        assert bytes(buffer.view()) == b"abc"
        assert tracker.outstanding == 1
        assert tracker.outstanding_bytes == 3

    def test_view_is_read_only(self) -> None:
        buffer = TransientMemoryTracker().allocate(b"abc")

        assert buffer.view().readonly

    def test_release_all(self) -> None:
        tracker = TransientMemoryTracker()
        first = tracker.allocate(b"abc")
        second = tracker.allocate(b"de")

        assert tracker.release_all() == 2
        assert tracker.outstanding == 0
        assert tracker.outstanding_bytes == 0
        assert first.released and second.released
        assert len(first) == 0

    def test_released_buffer_cannot_be_viewed(self) -> None:
        tracker = TransientMemoryTracker()
        buffer = tracker.allocate(b"abc")
        tracker.release_all()

        with pytest.raises(ValueError):
            buffer.view()

    def test_release_with_live_view(self) -> None:
        tracker = TransientMemoryTracker()
        buffer = tracker.allocate(b"abc")
        view = buffer.view()

        assert tracker.release_all() == 1
        assert bytes(view) == b"abc"

    def test_release_when_empty(self) -> None:
        assert TransientMemoryTracker().release_all() == 0

    def test_allocated_total_survives_release(self) -> None:
        tracker = TransientMemoryTracker()
        tracker.allocate(b"a")
        tracker.release_all()
        tracker.allocate(b"b")

        assert tracker.allocated_total == 2
        assert tracker.outstanding == 1

    def test_on_change_reports_deltas(self) -> None:
        changes: list[tuple[int, int]] = []
        tracker = TransientMemoryTracker(on_change=lambda n, size: changes.append((n, size)))

        tracker.allocate(b"abc")
        tracker.allocate(b"de")
        tracker.release_all()
        tracker.release_all()

        assert changes == [(1, 3), (1, 2), (-2, -5)]
