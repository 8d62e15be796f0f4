"""
One-shot asynchronous initialization gate.

Every caller of wait() awaits the same initialization; it runs once per gate.
A failed initialization is not memoized, so the next wait() tries again.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger


class ReadinessGate:
    """Memoized one-shot initializer shared by all awaiting callers."""

    def __init__(self, initializer: Callable[[], Awaitable[None]], name: str = "engine"):
        self._initializer = initializer
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def wait(self) -> None:
        """Run the initializer on first call; later callers await the same run."""
        if self._ready:
            return

        async with self._lock:
            if self._task is None:
                logger.debug(f"Initializing {self._name}")
                self._task = asyncio.ensure_future(self._initializer())
            task = self._task

        try:
            await asyncio.shield(task)
        except Exception:
            async with self._lock:
                if self._task is task:
                    self._task = None
            raise

        if not self._ready:
            self._ready = True
            logger.info(f"{self._name.capitalize()} ready")

    def reset(self) -> None:
        """Forget the completed initialization (used on dispose)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._ready = False
