"""
Study session composition, persistence and restore.

A session is a bounded working set drawn from the due set:
- Up to session_size items, targeting priority_ratio origin-priority items
- A shortfall in either group is filled from the other
- Persisted so that a reload within the expiry window resumes it

Lifecycle:
    NO_SESSION -> ACTIVE -> COMPLETE -> ACTIVE (new)
"""

from __future__ import annotations

import asyncio
import math
import random
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loguru import logger

from .errors import NoActiveSessionError, UnknownItemError
from .models import CatalogItem, ScheduledItem
from .scheduler import is_eligible
from .session_store import Session, SessionStore, SubmissionState

DueProvider = Callable[[Sequence[CatalogItem]], Awaitable[list[ScheduledItem]]]


# =============================================================================
# Configuration & Results
# =============================================================================


@dataclass
class SessionConfig:
    """Configuration for session building and restore validation."""

    session_size: int = 20
    priority_ratio: float = 0.8  # Share of origin-priority items
    expiry_hours: float = 4.0
    catalog_drift_tolerance: float = 0.10  # Allowed relative catalog size change
    min_resolvable_ratio: float = 0.5  # Saved ids that must still exist

    @property
    def priority_slots(self) -> int:
        return min(self.session_size, math.ceil(round(self.session_size * self.priority_ratio, 9)))

    @property
    def expiry_ms(self) -> int:
        return int(self.expiry_hours * 60 * 60 * 1000)


class SessionPhase(str, Enum):
    """Where the manager is in the session lifecycle."""

    NO_SESSION = "no_session"
    ACTIVE = "active"
    COMPLETE = "complete"


@dataclass(frozen=True)
class SessionResults:
    """Outcome of an ended session. Unanswered items count as incorrect."""

    correct: int
    incorrect: int
    total: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


# =============================================================================
# Session Manager
# =============================================================================


class SessionManager:
    """
    Owns the current session, its submissions and its persisted pointer.

    Due items come from an async provider (normally the engine's due set),
    so the manager never reads progress records itself.
    """

    def __init__(
        self,
        store: SessionStore,
        due_provider: DueProvider,
        config: SessionConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the session manager.

        Args:
            store: Persistence for the session pointer and submissions
            due_provider: Coroutine function returning the due set for a catalog
            config: Session configuration (defaults if None)
            rng: Random source for shuffling
            clock: Callable returning the current local datetime
        """
        self.store = store
        self.due_provider = due_provider
        self.config = config or SessionConfig()
        self.rng = rng or random.Random()
        self.clock = clock

        self.phase = SessionPhase.NO_SESSION
        self.session: Session | None = None
        self.items: list[CatalogItem] = []
        self.submissions: dict[str, SubmissionState] = {}
        self.results: SessionResults | None = None
        self._generation: asyncio.Future[list[CatalogItem]] | None = None

    @property
    def is_generating(self) -> bool:
        return self._generation is not None and not self._generation.done()

    @property
    def is_complete(self) -> bool:
        return self.phase is SessionPhase.COMPLETE

    def _now_ms(self) -> int:
        return int(self.clock().timestamp() * 1000)

    # =========================================================================
    # Building
    # =========================================================================

    def create_session(self, due_items: Sequence[ScheduledItem], catalog_size: int) -> Session:
        """
        Compose and persist a session from the due set.

        Priority items come first, then ordinary ones; each group is shuffled.

        Args:
            due_items: Candidate items (any order)
            catalog_size: Eligible catalog size, recorded for drift checks

        Returns:
            The persisted Session
        """
        shuffled = list(due_items)
        self.rng.shuffle(shuffled)

        priority = [s for s in shuffled if s.origin_priority]
        ordinary = [s for s in shuffled if not s.origin_priority]

        size = self.config.session_size
        priority_slots = self.config.priority_slots
        ordinary_slots = size - priority_slots

        take_priority = min(len(priority), priority_slots)
        take_ordinary = min(len(ordinary), ordinary_slots + (priority_slots - take_priority))
        # Ordinary shortfall is filled with extra priority items
        take_priority = min(len(priority), size - take_ordinary)

        selected_priority = priority[:take_priority]
        selected_ordinary = ordinary[:take_ordinary]
        self.rng.shuffle(selected_priority)
        self.rng.shuffle(selected_ordinary)
        selected = selected_priority + selected_ordinary

        session = Session(
            item_ids=tuple(s.id for s in selected),
            created_at=self._now_ms(),
            total_items_at_creation=catalog_size,
        )
        self.store.save(session)

        self.session = session
        self.items = [s.item for s in selected]
        self.results = None
        self.phase = SessionPhase.ACTIVE

        logger.info(
            f"Session built: {len(selected_priority)} priority + "
            f"{len(selected_ordinary)} ordinary = {len(selected)} items "
            f"(from {len(shuffled)} due)"
        )
        return session

    # =========================================================================
    # Restore
    # =========================================================================

    def restore_session(
        self,
        catalog: Sequence[CatalogItem],
        keep_answered: bool = False,
    ) -> list[CatalogItem] | None:
        """
        Resume the saved session if it is still valid for this catalog.

        A saved session is accepted only when it is younger than the expiry,
        the catalog size has not drifted beyond the tolerance, and enough of
        its ids still resolve. A session whose items were all submitted
        already is discarded as well, unless keep_answered is set. Any
        rejection clears the saved pointer.

        Args:
            catalog: Current catalog
            keep_answered: Keep a session even when every item was submitted

        Returns:
            The session's items in saved order, or None if nothing was restored
        """
        saved = self.store.load()
        if saved is None:
            return None

        eligible = [item for item in catalog if is_eligible(item)]
        catalog_size = len(eligible)
        submissions = self.store.load_submissions()
        restored: list[CatalogItem] = []
        reason: str | None = None

        if not saved.item_ids:
            reason = "saved session is empty"
        elif saved.age_ms(self._now_ms()) >= self.config.expiry_ms:
            reason = "saved session expired"
        elif (
            saved.total_items_at_creation is not None
            and abs(saved.total_items_at_creation - catalog_size)
            > catalog_size * self.config.catalog_drift_tolerance
        ):
            reason = f"catalog drifted from {saved.total_items_at_creation} to {catalog_size} items"
        else:
            by_id = {item.id: item for item in eligible}
            restored = [by_id[item_id] for item_id in saved.item_ids if item_id in by_id]

            if len(restored) < len(saved.item_ids) * self.config.min_resolvable_ratio:
                reason = f"only {len(restored)}/{len(saved.item_ids)} saved items still exist"
            elif not keep_answered and all(
                item.id in submissions and submissions[item.id].is_submitted for item in restored
            ):
                reason = "every saved item was already answered"
                submissions = {}
                self.store.clear_submissions()

        if reason:
            logger.info(f"Not restoring session: {reason}")
            self.store.clear()
            return None

        self.session = saved
        self.items = restored
        self.submissions = {k: v for k, v in submissions.items() if k in saved.item_ids}
        self.results = None
        self.phase = SessionPhase.ACTIVE
        logger.info(f"Session restored: {len(restored)} items")
        return list(restored)

    def resume_for_end(self, catalog: Sequence[CatalogItem]) -> list[CatalogItem] | None:
        """Restore the saved session so it can be ended, answered or not."""
        if self.phase is SessionPhase.ACTIVE and self.session is not None:
            return list(self.items)
        return self.restore_session(catalog, keep_answered=True)

    async def load_or_create(self, catalog: Sequence[CatalogItem]) -> list[CatalogItem]:
        """
        Items of the current session, restoring or generating one as needed.

        While results are showing (COMPLETE) the ended session's items are
        returned unchanged; a new one starts only via start_new_session().
        """
        if self.phase is SessionPhase.COMPLETE:
            return list(self.items)
        if self.is_generating:
            return await asyncio.shield(self._generation)

        restored = self.restore_session(catalog)
        if restored is not None:
            return restored
        return await self._regenerate(catalog)

    async def _regenerate(self, catalog: Sequence[CatalogItem]) -> list[CatalogItem]:
        if self.is_generating:
            logger.debug("Session generation already in progress, joining it")
            return await asyncio.shield(self._generation)

        self._generation = asyncio.ensure_future(self._generate(list(catalog)))
        return await asyncio.shield(self._generation)

    async def _generate(self, catalog: list[CatalogItem]) -> list[CatalogItem]:
        due_items = await self.due_provider(catalog)
        catalog_size = sum(1 for item in catalog if is_eligible(item))

        self.submissions = {}
        self.store.clear_submissions()
        self.create_session(due_items, catalog_size)
        return list(self.items)

    # =========================================================================
    # Answers & Ending
    # =========================================================================

    def submit(self, item_id: str, answers: Sequence[int], is_correct: bool) -> SubmissionState:
        """Record the submission for one session item and persist it."""
        if self.phase is not SessionPhase.ACTIVE or self.session is None:
            raise NoActiveSessionError("No active session to submit answers to")
        if item_id not in self.session.item_ids:
            raise UnknownItemError(item_id)

        state = SubmissionState(
            is_submitted=True,
            is_correct=is_correct,
            submitted_answers=tuple(answers),
            submitted_at=self._now_ms(),
        )
        self.submissions[item_id] = state
        self.store.save_submissions(self.submissions)
        return state

    def end_session(
        self,
        submissions: Mapping[str, SubmissionState | dict] | None = None,
    ) -> SessionResults:
        """
        Close the session and compute its results.

        Args:
            submissions: Submission states to score (the manager's own if None)

        Returns:
            SessionResults, kept until start_new_session()
        """
        if self.phase is SessionPhase.COMPLETE and self.results is not None:
            return self.results
        if self.phase is not SessionPhase.ACTIVE:
            raise NoActiveSessionError("No active session to end")

        states = self.submissions if submissions is None else {
            item_id: s if isinstance(s, SubmissionState) else SubmissionState.from_dict(s)
            for item_id, s in submissions.items()
        }

        correct = sum(1 for item in self.items if item.id in states and states[item.id].is_correct)
        total = len(self.items)
        self.results = SessionResults(correct=correct, incorrect=total - correct, total=total)

        self.store.clear()
        self.phase = SessionPhase.COMPLETE
        logger.info(f"Session ended: {correct}/{total} correct")
        return self.results

    async def start_new_session(self, catalog: Sequence[CatalogItem]) -> list[CatalogItem]:
        """Clear results, submissions and the saved pointer, then regenerate."""
        logger.debug("Starting new session")
        self.results = None
        self.submissions = {}
        self.session = None
        self.items = []
        self.phase = SessionPhase.NO_SESSION
        self.store.clear_submissions()
        self.store.clear()
        return await self._regenerate(catalog)

    def reset(self) -> None:
        """Forget all session state, persisted and in memory."""
        self.results = None
        self.submissions = {}
        self.session = None
        self.items = []
        self.phase = SessionPhase.NO_SESSION
        self.store.clear_submissions()
        self.store.clear()
