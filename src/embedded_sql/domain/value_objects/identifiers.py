"""Identifiers for objects owned by a database."""

from __future__ import annotations

from typing import NewType


StatementId = NewType("StatementId", int)
"""Slot of a prepared statement in its database's registry. Never reused within a database."""
