"""
Leitner Engine facade.

An explicit, owned instance wiring the components together:

    storage -> ProgressStore / ActivityLog / SessionStore
            -> LeitnerScheduler (pure)
            -> SessionManager (due items via the scheduler)
            -> StatsEngine (read-only)

Lifecycle: create -> ensure_ready -> ... -> dispose.
"""
from __future__ import annotations

import json
import random
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime

from loguru import logger
from pydantic import ValidationError

from config import Settings, get_settings

from .activity import ActivityLog
from .errors import EngineNotReadyError, InvalidAnswerError, StorageError, UnknownItemError
from .models import (
    AnswerResult,
    CatalogItem,
    CompletionProgress,
    DailyProgress,
    ReviewRecord,
    ScheduledItem,
    StatsSnapshot,
)
from .progress_store import ProgressStore, StoreConfig
from .readiness import ReadinessGate
from .scheduler import MIN_BOX, LeitnerScheduler, SchedulerConfig
from .schemas import StoredSettings
from .session_manager import SessionConfig, SessionManager, SessionResults
from .session_store import SessionStore, SubmissionState
from .stats_engine import StatsConfig, StatsEngine
from .storage import SETTINGS_KEY, StorageBackend

MIN_DAILY_TARGET = 1
MAX_DAILY_TARGET = 500


class LeitnerEngine:
    """
    Public surface of the scheduling and session engine.

    Reads and session operations await the readiness gate themselves;
    process_answer() is synchronous and raises EngineNotReadyError if the
    gate has not resolved yet.
    """

    def __init__(
        self,
        storage: StorageBackend,
        settings: Settings | None = None,
        *,
        scheduler_config: SchedulerConfig | None = None,
        session_config: SessionConfig | None = None,
        store_config: StoreConfig | None = None,
        stats_config: StatsConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ):
        """
        Initialize the engine (nothing is read until ensure_ready()).

        Args:
            storage: Key/value backend shared by all components
            settings: Application settings (cached get_settings() if None)
            scheduler_config: Overrides the settings-derived scheduler config
            session_config: Overrides the settings-derived session config
            store_config: Overrides the settings-derived store config
            stats_config: Overrides the settings-derived stats config
            clock: Callable returning the current local datetime
            rng: Random source for resurfacing and session shuffles
        """
        settings = settings or get_settings()
        self.storage = storage
        self.clock = clock

        self.scheduler = LeitnerScheduler(scheduler_config or settings.get_scheduler_config(), rng=rng)

        # Store and scheduler must agree on the box scheme
        store_config = replace(
            store_config or settings.get_store_config(),
            intervals=dict(self.scheduler.intervals),
        )
        self.progress = ProgressStore(storage, store_config, clock=clock)

        self.stats_config = stats_config or settings.get_stats_config()
        self.activity = ActivityLog(storage, self.stats_config.activity_retention_days, clock=clock)
        self.stats = StatsEngine(self.progress, self.activity, self.stats_config, clock=clock)

        self.sessions = SessionManager(
            SessionStore(storage),
            self.get_due_questions,
            session_config or settings.get_session_config(),
            rng=rng,
            clock=clock,
        )

        self._daily_target = self.stats_config.default_daily_target
        self._catalog_ids: set[str] | None = None
        self._gate = ReadinessGate(self._initialize, name="leitner engine")

    @classmethod
    async def create(cls, storage: StorageBackend, **kwargs) -> "LeitnerEngine":
        """Build an engine and wait until it is ready."""
        engine = cls(storage, **kwargs)
        await engine.ensure_ready()
        return engine

    async def __aenter__(self) -> "LeitnerEngine":
        await self.ensure_ready()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.dispose()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_ready(self) -> bool:
        return self._gate.is_ready

    async def ensure_ready(self) -> None:
        """Load persisted state once; concurrent callers share the same load."""
        await self._gate.wait()

    async def _initialize(self) -> None:
        self.progress.load()
        self.activity.load()
        self.activity.prune()
        self._daily_target = self._load_daily_target()
        logger.debug(
            f"Engine state: {len(self.progress)} records, daily target {self._daily_target}"
        )

    def flush(self) -> bool:
        """Write pending progress now."""
        return self.progress.flush()

    def dispose(self) -> None:
        """Flush outstanding writes and drop readiness."""
        self.progress.close()
        self._gate.reset()
        logger.debug("Engine disposed")

    def _require_ready(self) -> None:
        if not self._gate.is_ready:
            raise EngineNotReadyError("Call ensure_ready() before using progress")

    def _remember_catalog(self, catalog: Sequence[CatalogItem]) -> None:
        self._catalog_ids = {item.id for item in catalog}

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def get_due_questions(self, catalog: Sequence[CatalogItem]) -> list[ScheduledItem]:
        """Due set for a catalog, priority-ordered and interleaved by topic."""
        await self.ensure_ready()
        self._remember_catalog(catalog)
        due = self.scheduler.compute_due_set(catalog, self.progress.all(), self.clock())
        return self.scheduler.order_due_items(due)

    def refresh_question_order(self) -> int:
        """Give equally ranked items a new order. Returns the new seed."""
        return self.scheduler.reseed()

    def _validate_answer(self, item_id: str, is_correct: bool) -> None:
        if not isinstance(item_id, str) or not item_id:
            raise InvalidAnswerError(f"Item id must be a non-empty string, got {item_id!r}")
        if not isinstance(is_correct, bool):
            raise InvalidAnswerError(
                f"is_correct must be a bool, got {type(is_correct).__name__}"
            )
        if self._catalog_ids is not None and item_id not in self._catalog_ids:
            raise UnknownItemError(item_id)

    def process_answer(self, item_id: str, is_correct: bool) -> AnswerResult:
        """
        Apply one answer: move the item between boxes and count the attempt.

        Raises:
            EngineNotReadyError: ensure_ready() has not completed
            InvalidAnswerError: empty id or non-bool flag
            UnknownItemError: id not in the last supplied catalog
        """
        self._require_ready()
        self._validate_answer(item_id, is_correct)

        now = self.clock()
        previous = self.progress.get(item_id)
        record = self.scheduler.apply_answer(previous, item_id, is_correct, now)
        self.progress.upsert(record)
        self.activity.increment(now)

        from_box = previous.current_box if previous else MIN_BOX
        logger.debug(
            f"{item_id}: {'correct' if is_correct else 'incorrect'}, "
            f"box {from_box} -> {record.current_box}, next {record.next_review_date}"
        )
        return AnswerResult(
            correct=is_correct,
            moved_from_box=from_box,
            moved_to_box=record.current_box,
            next_review=record.next_review_date,
        )

    # =========================================================================
    # Progress & Stats
    # =========================================================================

    def get_question_progress(self, item_id: str) -> ReviewRecord | None:
        """Review record of one item, None if never answered."""
        self._require_ready()
        return self.progress.get(item_id)

    async def get_stats(self, catalog: Sequence[CatalogItem]) -> StatsSnapshot:
        await self.ensure_ready()
        return self.stats.snapshot(catalog, self._daily_target)

    async def get_completion_progress(self, catalog: Sequence[CatalogItem]) -> CompletionProgress:
        await self.ensure_ready()
        return self.stats.completion_progress(catalog)

    async def get_today_progress(self) -> DailyProgress:
        await self.ensure_ready()
        return self.stats.today_progress(self._daily_target)

    async def get_daily_activity_history(self) -> dict[str, int]:
        """Answers per calendar day (YYYY-MM-DD), oldest first."""
        await self.ensure_ready()
        return self.activity.history()

    # =========================================================================
    # Daily Target
    # =========================================================================

    def get_daily_target(self) -> int:
        return self._daily_target

    def set_daily_target(self, target: int) -> int:
        """Set and persist the daily answer target (1..500)."""
        if isinstance(target, bool) or not isinstance(target, int):
            raise ValueError(f"Daily target must be an integer, got {target!r}")
        if not MIN_DAILY_TARGET <= target <= MAX_DAILY_TARGET:
            raise ValueError(
                f"Daily target must be between {MIN_DAILY_TARGET} and {MAX_DAILY_TARGET}, got {target}"
            )

        self._daily_target = target
        try:
            self.storage.save(SETTINGS_KEY, json.dumps({"dailyTarget": target}))
        except StorageError as e:
            logger.error(f"Failed to save settings: {e}")
        return target

    def _load_daily_target(self) -> int:
        default = self.stats_config.default_daily_target
        blob = self.storage.load(SETTINGS_KEY)
        if not blob:
            return default

        try:
            stored = StoredSettings.model_validate(json.loads(blob))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable settings: {e}")
            return default

        target = stored.daily_target
        if target is None:
            return default
        if not MIN_DAILY_TARGET <= target <= MAX_DAILY_TARGET:
            logger.warning(f"Stored daily target {target} out of range, using {default}")
            return default
        return target

    # =========================================================================
    # Sessions
    # =========================================================================

    async def load_session(self, catalog: Sequence[CatalogItem]) -> list[CatalogItem]:
        """Items of the current session (restored or freshly built)."""
        await self.ensure_ready()
        self._remember_catalog(catalog)
        return await self.sessions.load_or_create(catalog)

    def submit_answer(self, item_id: str, answers: Sequence[int], is_correct: bool) -> AnswerResult:
        """Record a session submission and apply it to the item's progress."""
        self._require_ready()
        self._validate_answer(item_id, is_correct)
        self.sessions.submit(item_id, answers, is_correct)
        return self.process_answer(item_id, is_correct)

    async def start_new_session(self, catalog: Sequence[CatalogItem]) -> list[CatalogItem]:
        await self.ensure_ready()
        self._remember_catalog(catalog)
        return await self.sessions.start_new_session(catalog)

    def end_session(
        self,
        submissions: Mapping[str, SubmissionState | dict] | None = None,
    ) -> SessionResults:
        return self.sessions.end_session(submissions)

    # =========================================================================
    # Reset
    # =========================================================================

    def clear_all_progress(self) -> None:
        """Forget every record, the activity history and the current session."""
        self.progress.clear()
        self.activity.clear()
        self.sessions.reset()
        logger.info("All progress cleared")
