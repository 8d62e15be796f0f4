"""
Exceptions raised by the Leitner engine.

Programming errors (bad arguments, calls before readiness) fail fast.
Storage errors are raised by backends and handled inside ProgressStore.
"""
from __future__ import annotations


class LeitnerError(Exception):
    """Base class for all engine errors."""
    pass


class EngineNotReadyError(LeitnerError):
    """Raised when a mutation runs before ensure_ready() completed."""
    pass


class InvalidAnswerError(LeitnerError, ValueError):
    """Raised for a malformed answer submission (empty id, non-bool flag)."""
    pass


class UnknownItemError(LeitnerError, KeyError):
    """Raised when an item id is not part of the supplied catalog."""

    def __init__(self, item_id: str):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"Unknown item id: {self.item_id!r}"


class StorageError(LeitnerError):
    """Raised by a storage backend when a read or write fails."""
    pass


class StorageQuotaError(StorageError):
    """Raised when a write would exceed the backend's capacity."""
    pass


class NoActiveSessionError(LeitnerError):
    """Raised when a session operation needs a session and there is none."""
    pass


class CatalogError(LeitnerError):
    """Raised when a catalog file cannot be read."""
    pass
