"""
Read-only learning statistics.

Aggregates ProgressStore records and the ActivityLog over a catalog:
box distribution, accuracy, streak, the daily-target countdown and
completion progress. Nothing here writes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .activity import ActivityLog
from .models import (
    CatalogItem,
    CompletionProgress,
    DailyProgress,
    ReviewRecord,
    StatsSnapshot,
    calendar_date,
)
from .progress_store import ProgressStore
from .scheduler import MIN_BOX, is_eligible


@dataclass
class StatsConfig:
    """Configuration for statistics and the daily target."""

    default_daily_target: int = 60
    activity_retention_days: int = 90


class StatsEngine:
    """Computes StatsSnapshot, CompletionProgress and DailyProgress."""

    def __init__(
        self,
        store: ProgressStore,
        activity: ActivityLog,
        config: StatsConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.activity = activity
        self.config = config or StatsConfig()
        self.clock = clock

    # =========================================================================
    # Building Blocks
    # =========================================================================

    def box_distribution(
        self,
        items: Iterable[CatalogItem],
        records: Mapping[str, ReviewRecord],
    ) -> dict[int, int]:
        """Items per box; items never answered count as box 1."""
        distribution = {box: 0 for box in range(MIN_BOX, self.store.config.max_box + 1)}
        for item in items:
            record = records.get(item.id)
            box = record.current_box if record else MIN_BOX
            distribution[box] = distribution.get(box, 0) + 1
        return distribution

    @staticmethod
    def accuracy_rate(records: Iterable[ReviewRecord]) -> float:
        """Share of correct answers over all answers (0.0 when none)."""
        correct = answered = 0
        for record in records:
            correct += record.times_correct
            answered += record.total_answers
        return correct / answered if answered else 0.0

    @staticmethod
    def streak_days(
        records: Iterable[ReviewRecord],
        now: date | datetime,
        active_days: Iterable[date] = (),
    ) -> int:
        """
        Consecutive days with review activity, counting back from today.

        Today without activity does not end the streak; yesterday without
        activity does.

        Args:
            records: Review records (their last review date marks a day active)
            now: Reference time
            active_days: Extra active dates, e.g. from the activity log
        """
        days = {r.last_reviewed_date for r in records if r.last_reviewed_date is not None}
        days.update(active_days)
        if not days:
            return 0

        today = calendar_date(now)
        day = today if today in days else today - timedelta(days=1)
        streak = 0
        while day in days:
            streak += 1
            day -= timedelta(days=1)
        return streak

    @staticmethod
    def due_today(daily_target: int, reviewed_today: int) -> int:
        """Answers still needed today, floored at zero."""
        return max(0, daily_target - reviewed_today)

    @staticmethod
    def reviewed_on(records: Iterable[ReviewRecord], day: date | datetime) -> int:
        """Number of records last reviewed on the given calendar date."""
        target = calendar_date(day)
        return sum(1 for r in records if r.last_reviewed_date == target)

    # =========================================================================
    # Aggregates
    # =========================================================================

    def snapshot(self, catalog: Iterable[CatalogItem], daily_target: int | None = None) -> StatsSnapshot:
        """Full statistics for the eligible part of a catalog."""
        now = self.clock()
        target = daily_target if daily_target is not None else self.config.default_daily_target
        items = [item for item in catalog if is_eligible(item)]
        records = self.store.all()
        started = [records[item.id] for item in items if item.id in records]

        active_days = self.activity.active_days()

        return StatsSnapshot(
            total_items=len(items),
            items_started=len(started),
            box_distribution=self.box_distribution(items, records),
            due_today=self.due_today(target, self.activity.count_for(now)),
            accuracy_rate=self.accuracy_rate(started),
            streak_days=self.streak_days(records.values(), now, active_days),
        )

    def completion_progress(self, catalog: Iterable[CatalogItem]) -> CompletionProgress:
        """
        Answered/correct item counts.

        An item counts as correct when it was answered correctly more often
        than incorrectly.
        """
        items = [item for item in catalog if is_eligible(item)]
        started = [r for r in (self.store.get(item.id) for item in items) if r is not None]
        correct_items = sum(1 for r in started if r.times_correct > r.times_incorrect)

        return CompletionProgress(
            total_items=len(items),
            answered_items=len(started),
            correct_items=correct_items,
            incorrect_items=len(started) - correct_items,
            accuracy=self.accuracy_rate(started),
        )

    def today_progress(self, daily_target: int | None = None) -> DailyProgress:
        """Items reviewed today against the daily target."""
        target = daily_target if daily_target is not None else self.config.default_daily_target
        completed = self.reviewed_on(self.store, self.clock())

        return DailyProgress(
            target=target,
            completed=completed,
            remaining=self.due_today(target, completed),
            percentage=min(100.0, completed / target * 100) if target > 0 else 0.0,
        )
