"""
Daily activity tracking.

Counts answers per calendar day. Feeds the daily-target countdown and the
activity history (heatmap data). Stored as one object under
leitner-daily-attempts: {"YYYY-MM-DD": count}.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import date, datetime, timedelta

from loguru import logger

from .errors import StorageError
from .models import calendar_date
from .storage import ACTIVITY_KEY, StorageBackend


class ActivityLog:
    """Per-day answer counter with bounded history."""

    def __init__(
        self,
        storage: StorageBackend,
        retention_days: int = 90,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.retention_days = retention_days
        self.clock = clock
        self._counts: dict[str, int] = {}

    def load(self) -> dict[str, int]:
        """Read the counters; corrupted data degrades to an empty history."""
        self._counts = {}
        blob = self.storage.load(ACTIVITY_KEY)
        if not blob:
            return {}

        try:
            data = json.loads(blob)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupted activity history, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning("Activity history is not an object, starting empty")
            return {}

        for day, count in data.items():
            if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
                self._counts[day] = count
        return dict(self._counts)

    def increment(self, now: datetime | None = None) -> int:
        """Count one answer for today's calendar date."""
        day = calendar_date(now or self.clock()).isoformat()
        self._counts[day] = self._counts.get(day, 0) + 1
        self._save()
        return self._counts[day]

    def count_for(self, day: date | datetime) -> int:
        return self._counts.get(calendar_date(day).isoformat(), 0)

    def today(self) -> int:
        return self.count_for(self.clock())

    def history(self) -> dict[str, int]:
        """date string -> answers, days with zero answers omitted."""
        return {day: count for day, count in sorted(self._counts.items()) if count > 0}

    def active_days(self) -> list[date]:
        """Dates with at least one answer (unparseable keys skipped)."""
        days = []
        for day, count in self._counts.items():
            if count <= 0:
                continue
            try:
                days.append(date.fromisoformat(day))
            except ValueError:
                continue
        return sorted(days)

    def prune(self, now: datetime | None = None) -> int:
        """Drop entries older than the retention window or with invalid dates."""
        cutoff = calendar_date(now or self.clock()) - timedelta(days=self.retention_days)
        expired = []
        for day in self._counts:
            try:
                if date.fromisoformat(day) < cutoff:
                    expired.append(day)
            except ValueError:
                expired.append(day)

        for day in expired:
            del self._counts[day]
        if expired:
            logger.debug(f"Pruned {len(expired)} old activity entries")
            self._save()
        return len(expired)

    def clear(self) -> None:
        self._counts = {}
        self.storage.remove(ACTIVITY_KEY)

    def _save(self) -> None:
        try:
            self.storage.save(ACTIVITY_KEY, json.dumps(self._counts, sort_keys=True))
        except StorageError as e:
            logger.error(f"Failed to update daily activity: {e}")
