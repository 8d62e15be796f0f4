"""
Domain models for the Leitner engine.

Plain dataclasses with no I/O. Persistence schemas live in schemas.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

# =============================================================================
# Calendar Helpers
# =============================================================================


def calendar_date(value: date | datetime) -> date:
    """
    Local calendar date of a date or timestamp.

    Aware timestamps are converted to local time first, so a review stored
    in UTC lands on the learner's own calendar day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def parse_calendar_date(value: Any) -> date:
    """Parse 'YYYY-MM-DD' or a full ISO-8601 timestamp into a calendar date."""
    if isinstance(value, datetime):
        return calendar_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        raise ValueError(f"Not a date string: {value!r}")
    if len(value) == 10:
        return date.fromisoformat(value)
    return calendar_date(datetime.fromisoformat(value))


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (a bare date means midnight)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Not a timestamp string: {value!r}")
    return datetime.fromisoformat(value)


# =============================================================================
# Catalog
# =============================================================================


@dataclass(frozen=True)
class CatalogItem:
    """
    A quiz item as supplied by the content collaborator.

    The engine only reads these five fields; everything else about an item
    (question text, options, explanations) is opaque to it.
    """

    id: str
    topic: str
    option_count: int = 0
    has_rich_content: bool = False
    origin_priority: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogItem":
        """Create from a camelCase or snake_case mapping."""

        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if name in data:
                    return data[name]
            return default

        item_id = pick("id")
        if not isinstance(item_id, str) or not item_id:
            raise ValueError(f"Catalog item without a string id: {data!r}")

        def flag(*names: str) -> bool:
            value = pick(*names, default=False)
            if value is None:
                return False
            if not isinstance(value, bool):
                raise ValueError(f"{names[0]} must be a boolean, got {value!r}")
            return value

        options = pick("optionCount", "option_count", "options", default=0)
        if isinstance(options, list):
            options = len(options)

        return cls(
            id=item_id,
            topic=str(pick("topic", default="") or ""),
            option_count=int(options),
            has_rich_content=flag("hasRichContent", "has_rich_content", "hasCode"),
            origin_priority=flag("originPriority", "origin_priority", "isPdf"),
        )


# =============================================================================
# Review State
# =============================================================================


@dataclass(frozen=True)
class ReviewRecord:
    """Review state for a single catalog item."""

    item_id: str
    current_box: int
    next_review_date: date
    times_correct: int = 0
    times_incorrect: int = 0
    last_reviewed: datetime | None = None
    last_answer_correct: bool = False

    @property
    def total_answers(self) -> int:
        return self.times_correct + self.times_incorrect

    @property
    def last_reviewed_date(self) -> date | None:
        """Calendar date of the last review."""
        if self.last_reviewed is None:
            return None
        return calendar_date(self.last_reviewed)


@dataclass(frozen=True)
class ScheduledItem:
    """A catalog item annotated with its scheduling state."""

    item: CatalogItem
    is_due: bool
    current_box: int
    is_new: bool = False
    times_incorrect: int = 0
    resurfaced: bool = False

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def topic(self) -> str:
        return self.item.topic

    @property
    def origin_priority(self) -> bool:
        return self.item.origin_priority


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of processing one answer."""

    correct: bool
    moved_from_box: int
    moved_to_box: int
    next_review: date


# =============================================================================
# Stats
# =============================================================================


@dataclass
class StatsSnapshot:
    """Aggregate learning statistics for a catalog."""

    total_items: int
    items_started: int
    box_distribution: dict[int, int] = field(default_factory=dict)
    due_today: int = 0
    accuracy_rate: float = 0.0
    streak_days: int = 0


@dataclass
class CompletionProgress:
    """Answered/correct counts for progress bars."""

    total_items: int
    answered_items: int
    correct_items: int
    incorrect_items: int
    accuracy: float


@dataclass
class DailyProgress:
    """Progress towards today's answer target."""

    target: int
    completed: int
    remaining: int
    percentage: float
