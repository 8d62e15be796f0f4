"""
Leitner Box Scheduler with Topic Interleaving.

Implements:
- Box transitions (correct answers promote one box, wrong answers reset to box 1)
- Due-date arithmetic on calendar dates
- Due-set selection with mastered-item resurfacing and backfill
- Priority ordering with a call-stable pseudo-random tiebreak
- Round-robin interleaving across topics

Box intervals (default 3-box scheme):
1 - 1 day  (new or recently failed)
2 - 2 days (improving)
3 - 3 days (mastered)

Everything here is pure over ReviewRecords: no storage, no clock of its own.
"""

from __future__ import annotations

import functools
import hashlib
import random
import secrets
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Protocol, TypeVar

from loguru import logger

from .models import CatalogItem, ReviewRecord, ScheduledItem, calendar_date

MIN_BOX = 1
DEFAULT_INTERVALS: dict[int, int] = {1: 1, 2: 2, 3: 3}

# Chosen once per process: ordering is stable within a run, different across runs.
_PROCESS_SEED = secrets.randbits(32)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class SchedulerConfig:
    """Configuration for box scheduling and due-set selection."""

    intervals: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_INTERVALS))
    review_probability: float = 0.10  # Chance to resurface a non-due mastered item
    max_resurfaced_items: int | None = None
    min_due_items: int = 20  # Backfill threshold
    seed: int | None = None  # None = per-process seed

    def __post_init__(self) -> None:
        boxes = sorted(self.intervals)
        if not boxes or boxes != list(range(MIN_BOX, len(boxes) + 1)):
            raise ValueError(f"Box intervals must cover boxes 1..N, got {boxes}")
        days = [self.intervals[b] for b in boxes]
        if any(d < 1 for d in days) or any(b <= a for a, b in zip(days, days[1:])):
            raise ValueError(f"Box intervals must be positive and increasing, got {days}")

    @property
    def max_box(self) -> int:
        return max(self.intervals)


# =============================================================================
# Pure Functions
# =============================================================================


def next_review_date(
    box: int,
    from_date: date | datetime,
    intervals: Mapping[int, int] = DEFAULT_INTERVALS,
) -> date:
    """
    Calendar date on which an item in `box` is next due.

    Args:
        box: Box the item now sits in
        from_date: Review date (timestamps are reduced to their calendar date)
        intervals: Box -> days mapping

    Returns:
        from_date + intervals[box] days
    """
    if box not in intervals:
        raise ValueError(f"No interval configured for box {box}")
    return calendar_date(from_date) + timedelta(days=intervals[box])


def move_item(current_box: int, was_correct: bool, max_box: int = 3) -> int:
    """
    Box an item moves to after an answer.

    Correct answers promote one box (capped at max_box). Incorrect answers
    always send the item back to box 1, whatever box it was in.
    """
    if not isinstance(was_correct, bool):
        raise TypeError(f"was_correct must be a bool, got {type(was_correct).__name__}")
    if isinstance(current_box, bool) or not isinstance(current_box, int):
        raise ValueError(f"Box must be an int, got {current_box!r}")
    if current_box < MIN_BOX or current_box > max_box:
        raise ValueError(f"Box {current_box} outside {MIN_BOX}..{max_box}")

    if was_correct:
        return min(current_box + 1, max_box)
    return MIN_BOX


def is_due(record: ReviewRecord, now: date | datetime) -> bool:
    """Due when the review date is today or earlier (calendar dates only)."""
    return record.next_review_date <= calendar_date(now)


def is_eligible(item: CatalogItem) -> bool:
    """Items without options or with rich/code content are never scheduled."""
    return item.option_count > 0 and not item.has_rich_content


def stable_random(item_id: str, seed: int) -> float:
    """Deterministic pseudo-random value in [0, 1) for (seed, item_id)."""
    digest = hashlib.blake2b(f"{seed}:{item_id}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") / 2**64


class _HasTopic(Protocol):
    @property
    def topic(self) -> str: ...


T = TypeVar("T", bound=_HasTopic)


def interleave_by_topic(items: Sequence[T]) -> list[T]:
    """
    Round-robin items across topics.

    Groups are visited in first-seen order; each visit takes the head of the
    group, so the order within a topic is preserved. Drained groups leave
    the rotation.
    """
    if len(items) <= 2:
        return list(items)

    groups: dict[str, deque[T]] = {}
    for item in items:
        groups.setdefault(item.topic, deque()).append(item)

    if len(groups) == 1:
        return list(items)

    result: list[T] = []
    rotation = list(groups.values())
    while rotation:
        for group in list(rotation):
            result.append(group.popleft())
            if not group:
                rotation.remove(group)

    return result


# =============================================================================
# Leitner Scheduler
# =============================================================================


class LeitnerScheduler:
    """
    Box-transition and due-set logic.

    Holds only configuration, a tiebreak seed and a random source for
    resurfacing; all state it reasons about is passed in.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
            rng: Random source for resurfacing (module random if None)
        """
        self.config = config or SchedulerConfig()
        self.rng = rng or random.Random()
        self.seed = self.config.seed if self.config.seed is not None else _PROCESS_SEED

    @property
    def intervals(self) -> dict[int, int]:
        return self.config.intervals

    @property
    def max_box(self) -> int:
        return self.config.max_box

    def reseed(self, seed: int | None = None) -> int:
        """Rotate the tiebreak seed, giving ties a fresh order."""
        self.seed = seed if seed is not None else secrets.randbits(32)
        logger.debug(f"Tiebreak seed rotated to {self.seed}")
        return self.seed

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def next_review_date(self, box: int, from_date: date | datetime) -> date:
        return next_review_date(box, from_date, self.intervals)

    def move_item(self, current_box: int, was_correct: bool) -> int:
        return move_item(current_box, was_correct, self.max_box)

    def is_due(self, record: ReviewRecord, now: date | datetime) -> bool:
        return is_due(record, now)

    def apply_answer(
        self,
        record: ReviewRecord | None,
        item_id: str,
        was_correct: bool,
        now: datetime,
    ) -> ReviewRecord:
        """
        Produce the record that results from answering an item.

        Unseen items start in box 1 before the answer is applied, so a first
        correct answer lands in box 2.
        """
        current_box = record.current_box if record else MIN_BOX
        new_box = self.move_item(current_box, was_correct)

        times_correct = record.times_correct if record else 0
        times_incorrect = record.times_incorrect if record else 0

        return ReviewRecord(
            item_id=item_id,
            current_box=new_box,
            next_review_date=self.next_review_date(new_box, now),
            times_correct=times_correct + (1 if was_correct else 0),
            times_incorrect=times_incorrect + (0 if was_correct else 1),
            last_reviewed=now,
            last_answer_correct=was_correct,
        )

    # -------------------------------------------------------------------------
    # Due Set
    # -------------------------------------------------------------------------

    def classify(
        self,
        catalog: Iterable[CatalogItem],
        records: Mapping[str, ReviewRecord],
        now: date | datetime,
    ) -> list[ScheduledItem]:
        """Annotate every eligible catalog item with its scheduling state."""
        scheduled: list[ScheduledItem] = []
        seen: set[str] = set()

        for item in catalog:
            if item.id in seen or not is_eligible(item):
                continue
            seen.add(item.id)

            record = records.get(item.id)
            if record is None:
                scheduled.append(ScheduledItem(item=item, is_due=True, current_box=MIN_BOX, is_new=True))
            else:
                scheduled.append(
                    ScheduledItem(
                        item=item,
                        is_due=self.is_due(record, now),
                        current_box=record.current_box,
                        times_incorrect=record.times_incorrect,
                    )
                )

        return scheduled

    def compute_due_set(
        self,
        catalog: Iterable[CatalogItem],
        records: Mapping[str, ReviewRecord],
        now: date | datetime,
    ) -> list[ScheduledItem]:
        """
        Select the items to study now.

        1. Every new or due eligible item
        2. A random sample of non-due mastered items for reinforcement
        3. Backfill with the weakest non-due items up to min_due_items

        Returns:
            Unordered list of ScheduledItems (see order_due_items)
        """
        scheduled = self.classify(catalog, records, now)
        selected = [s for s in scheduled if s.is_due]
        due_count = len(selected)

        resurfaced = 0
        cap = self.config.max_resurfaced_items
        for s in scheduled:
            if s.is_due or s.current_box != self.max_box:
                continue
            if cap is not None and resurfaced >= cap:
                break
            if self.rng.random() < self.config.review_probability:
                selected.append(replace(s, resurfaced=True))
                resurfaced += 1

        backfilled = 0
        shortfall = self.config.min_due_items - len(selected)
        if shortfall > 0:
            chosen = {s.id for s in selected}
            pool = sorted(
                (s for s in scheduled if s.id not in chosen),
                key=lambda s: (s.current_box, -s.times_incorrect, stable_random(s.id, self.seed)),
            )
            extra = pool[:shortfall]
            selected.extend(extra)
            backfilled = len(extra)

        logger.debug(
            f"Due set: {due_count} due + {resurfaced} resurfaced + {backfilled} backfilled "
            f"= {len(selected)} of {len(scheduled)} eligible"
        )
        return selected

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def priority_key(self, item: ScheduledItem) -> tuple[bool, int, int, float]:
        """Sort key: due first, lower box, more failures, then stable tiebreak."""
        return (
            not item.is_due,
            item.current_box,
            -item.times_incorrect,
            stable_random(item.id, self.seed),
        )

    def priority_order(self, a: ScheduledItem, b: ScheduledItem) -> int:
        """Comparator form of priority_key (-1, 0 or 1)."""
        ka, kb = self.priority_key(a), self.priority_key(b)
        return (ka > kb) - (ka < kb)

    def sort_by_priority(self, items: Iterable[ScheduledItem]) -> list[ScheduledItem]:
        return sorted(items, key=functools.cmp_to_key(self.priority_order))

    def order_due_items(self, items: Iterable[ScheduledItem]) -> list[ScheduledItem]:
        """Priority-sort then interleave by topic."""
        return interleave_by_topic(self.sort_by_priority(items))
