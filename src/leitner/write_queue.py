"""
Debounced write coalescing.

Rapid successive mutations mark the queue dirty; a single flush runs once
the debounce window elapses. Scheduling a new flush replaces the pending
timer, so flushes are never stacked. Without a running event loop nothing
is scheduled and the owner calls flush() itself.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger


class WriteCoalescer:
    """Coalesce many write requests into one call of a flush callback."""

    def __init__(self, flush_callback: Callable[[], None], delay_ms: int = 100):
        """
        Args:
            flush_callback: Performs the actual durable write.
            delay_ms: Debounce window in milliseconds.
        """
        self._flush_callback = flush_callback
        self.delay_ms = delay_ms
        self._pending = False
        self._flushing = False
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        """True when a write was requested but not yet flushed."""
        return self._pending

    @property
    def timer_active(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """Request a write; restarts the debounce window."""
        self._pending = True
        self._cancel_timer()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the owner flushes explicitly.
            return

        self._handle = loop.call_later(self.delay_ms / 1000, self._on_timer)

    def flush(self) -> bool:
        """
        Perform the pending write now.

        Returns:
            True if a write was attempted.
        """
        self._cancel_timer()
        if not self._pending or self._flushing:
            return False

        self._pending = False
        self._flushing = True
        try:
            self._flush_callback()
        finally:
            self._flushing = False
        return True

    def cancel(self) -> None:
        """Drop any pending write without performing it."""
        self._cancel_timer()
        self._pending = False

    def _on_timer(self) -> None:
        self._handle = None
        logger.debug("Debounce window elapsed, flushing")
        self.flush()

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
