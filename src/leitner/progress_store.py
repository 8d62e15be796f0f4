"""
Progress Store for the Leitner engine.

Sole owner of persisted per-item review state:
- Validates every stored entry on load (bad entries are dropped, not raised)
- Clamps records left over from the retired 5-box scheme
- Coalesces writes through a debounced WriteCoalescer
- Recovers from failed writes with one cleanup-and-retry

Storage key: leitner-progress
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .errors import StorageError
from .models import ReviewRecord, calendar_date
from .scheduler import DEFAULT_INTERVALS, MIN_BOX, next_review_date
from .schemas import StoredReviewRecord, dump_review_record
from .storage import PROGRESS_KEY, StorageBackend
from .write_queue import WriteCoalescer

# =============================================================================
# Configuration
# =============================================================================


@dataclass
class StoreConfig:
    """Configuration for progress persistence."""

    debounce_ms: int = 100
    cleanup_threshold_days: int = 30  # Mastered records idle this long may be pruned
    legacy_max_box: int = 5  # Widest box accepted from older data
    intervals: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_INTERVALS))
    storage_key: str = PROGRESS_KEY

    @property
    def max_box(self) -> int:
        return max(self.intervals)


# =============================================================================
# Progress Store
# =============================================================================


class ProgressStore:
    """
    In-memory authoritative map of ReviewRecords backed by a StorageBackend.

    The map is updated synchronously on every upsert; the durable copy
    catches up on the next flush.
    """

    def __init__(
        self,
        storage: StorageBackend,
        config: StoreConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the progress store.

        Args:
            storage: Key/value backend
            config: Store configuration (defaults if None)
            clock: Callable returning the current local datetime
        """
        self.storage = storage
        self.config = config or StoreConfig()
        self.clock = clock
        self._records: dict[str, ReviewRecord] = {}
        self._dirty = False
        self.write_failures = 0
        self._writes = WriteCoalescer(self._perform_save, delay_ms=self.config.debounce_ms)

    # =========================================================================
    # Read Access
    # =========================================================================

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._records

    def __iter__(self) -> Iterator[ReviewRecord]:
        return iter(list(self._records.values()))

    def get(self, item_id: str) -> ReviewRecord | None:
        """Return the record for item_id, or None if it was never answered."""
        return self._records.get(item_id)

    def all(self) -> dict[str, ReviewRecord]:
        """Snapshot of the whole map."""
        return dict(self._records)

    @property
    def dirty(self) -> bool:
        """True while the durable copy lags the in-memory map."""
        return self._dirty

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self) -> dict[str, ReviewRecord]:
        """
        Load and validate the persisted progress map.

        Invalid entries are dropped one by one; an unparseable blob yields an
        empty map. Never raises for bad data.

        Returns:
            item_id -> ReviewRecord
        """
        self._records = self._parse(self.storage.load(self.config.storage_key))
        self._dirty = False
        self.migrate_legacy_boxes()
        logger.debug(f"Loaded {len(self._records)} progress records")
        return self.all()

    def _parse(self, blob: str | None) -> dict[str, ReviewRecord]:
        if not blob:
            return {}

        try:
            data = json.loads(blob)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupted progress blob, starting empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Progress blob is a {type(data).__name__}, not an object; starting empty")
            return {}

        records: dict[str, ReviewRecord] = {}
        dropped = 0
        for item_id, raw in data.items():
            record = self._parse_entry(item_id, raw)
            if record is None:
                dropped += 1
            else:
                records[item_id] = record

        if dropped:
            logger.warning(f"Dropped {dropped} invalid progress entries")
        return records

    def _parse_entry(self, item_id: Any, raw: Any) -> ReviewRecord | None:
        if not isinstance(item_id, str) or not item_id or not isinstance(raw, dict):
            return None
        try:
            stored = StoredReviewRecord.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Invalid progress entry {item_id!r}: {e.errors()[0]['msg']}")
            return None

        if stored.question_id is not None and stored.question_id != item_id:
            logger.debug(f"Progress entry {item_id!r} carries mismatched id {stored.question_id!r}")
            return None
        if not MIN_BOX <= stored.current_box <= max(self.config.legacy_max_box, self.config.max_box):
            return None

        return stored.to_record(item_id)

    # =========================================================================
    # Mutation
    # =========================================================================

    def upsert(self, record: ReviewRecord) -> None:
        """Replace the record for record.item_id and schedule a flush."""
        if not MIN_BOX <= record.current_box <= self.config.max_box:
            raise ValueError(f"Box {record.current_box} outside {MIN_BOX}..{self.config.max_box}")
        self._records[record.item_id] = record
        self._mark_dirty()

    def delete(self, item_id: str) -> bool:
        """Remove a single record."""
        if self._records.pop(item_id, None) is None:
            return False
        self._mark_dirty()
        return True

    def clear(self) -> None:
        """
        Drop all progress (explicit reset).

        Any pending write is cancelled and the durable key removed, so a late
        flush cannot resurrect the old map.
        """
        self._records.clear()
        self._writes.cancel()
        self._dirty = False
        self.storage.remove(self.config.storage_key)
        logger.info("Progress cleared")

    def migrate_legacy_boxes(self) -> int:
        """
        Clamp records from a wider box scheme into the current top box.

        next_review_date is recomputed from the last review date using the
        top box interval. Saves once if anything changed.

        Returns:
            Number of migrated records
        """
        max_box = self.config.max_box
        migrated = 0

        for item_id, record in list(self._records.items()):
            if record.current_box <= max_box:
                continue
            anchor = record.last_reviewed or record.next_review_date
            self._records[item_id] = replace(
                record,
                current_box=max_box,
                next_review_date=next_review_date(max_box, anchor, self.config.intervals),
            )
            migrated += 1

        if migrated:
            logger.info(f"Migrated {migrated} records from legacy boxes into box {max_box}")
            self._mark_dirty()
        return migrated

    def cleanup_stale(self, now: datetime | None = None) -> int:
        """
        Prune mastered records not reviewed within the cleanup threshold.

        Pruned items behave like never-seen items afterwards.

        Returns:
            Number of removed records
        """
        today = calendar_date(now or self.clock())
        cutoff: date = today - timedelta(days=self.config.cleanup_threshold_days)

        stale = [
            item_id
            for item_id, record in self._records.items()
            if record.current_box == self.config.max_box
            and record.last_reviewed_date is not None
            and record.last_reviewed_date < cutoff
        ]
        for item_id in stale:
            del self._records[item_id]

        if stale:
            logger.info(f"Cleaned up {len(stale)} stale mastered records")
            self._dirty = True
        return len(stale)

    # =========================================================================
    # Persistence
    # =========================================================================

    def serialize(self) -> str:
        """Canonical blob for the current map."""
        return json.dumps({item_id: dump_review_record(r) for item_id, r in self._records.items()})

    def flush(self) -> bool:
        """Write any pending changes now. Returns True if a write was attempted."""
        if self._dirty and not self._writes.pending:
            # A previously failed write left the store dirty
            self._writes.schedule()
        return self._writes.flush()

    def close(self) -> None:
        """Flush outstanding writes."""
        self.flush()

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._writes.schedule()

    def _perform_save(self) -> None:
        if not self._dirty:
            return

        try:
            self.storage.save(self.config.storage_key, self.serialize())
        except StorageError as e:
            logger.warning(f"Progress write failed ({e}), cleaning up and retrying")
            self.cleanup_stale()
            try:
                self.storage.save(self.config.storage_key, self.serialize())
            except StorageError as retry_error:
                self.write_failures += 1
                logger.error(f"Failed to save progress even after cleanup: {retry_error}")
                return

        self._dirty = False
