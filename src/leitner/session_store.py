"""
Session state persistence for Leitner study sessions.

Enables save/resume so a learner can reload and continue a session.
Two records are kept:
- leitner-current-session: the session pointer (or null once ended)
- leitner-submission-states: per-item submission state for that session
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from loguru import logger
from pydantic import ValidationError

from .errors import StorageError
from .schemas import StoredSession, StoredSubmission
from .storage import SESSION_KEY, SUBMISSIONS_KEY, StorageBackend


@dataclass(frozen=True)
class Session:
    """A bounded, ordered working set of items for one study pass."""

    item_ids: tuple[str, ...]
    created_at: int  # epoch milliseconds
    total_items_at_creation: int | None = None

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.created_at

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "itemIds": list(self.item_ids),
            "createdAt": self.created_at,
            "totalItemsAtCreation": self.total_items_at_creation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        """Create from dictionary (raises pydantic ValidationError)."""
        stored = StoredSession.model_validate(data)
        return cls(
            item_ids=tuple(stored.item_ids),
            created_at=stored.created_at,
            total_items_at_creation=stored.total_items_at_creation,
        )


@dataclass(frozen=True)
class SubmissionState:
    """Answer submitted for one item of the current session."""

    is_submitted: bool = False
    is_correct: bool = False
    submitted_answers: tuple[int, ...] = field(default_factory=tuple)
    submitted_at: int | None = None  # epoch milliseconds

    def to_dict(self) -> dict:
        return {
            "isSubmitted": self.is_submitted,
            "isCorrect": self.is_correct,
            "submittedAnswers": list(self.submitted_answers),
            "submittedAt": self.submitted_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SubmissionState":
        stored = StoredSubmission.model_validate(data)
        return cls(
            is_submitted=stored.is_submitted,
            is_correct=stored.is_correct,
            submitted_answers=tuple(stored.submitted_answers),
            submitted_at=stored.submitted_at,
        )


class SessionStore:
    """
    Reads and writes the session pointer and submission states.

    Unreadable records are treated as absent; write failures are logged and
    dropped, since a lost session pointer only costs a regeneration.
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    # -------------------------------------------------------------------------
    # Session pointer
    # -------------------------------------------------------------------------

    def load(self) -> Session | None:
        """Load the saved session, or None if there is none or it is corrupt."""
        data = self._read(SESSION_KEY)
        if data is None:
            return None
        try:
            return Session.from_dict(data)
        except (ValidationError, TypeError) as e:
            logger.warning(f"Discarding unreadable saved session: {e}")
            return None

    def save(self, session: Session) -> None:
        self._write(SESSION_KEY, session.to_dict())

    def clear(self) -> None:
        """Persist a null session pointer."""
        self._write(SESSION_KEY, None)

    # -------------------------------------------------------------------------
    # Submission states
    # -------------------------------------------------------------------------

    def load_submissions(self) -> dict[str, SubmissionState]:
        data = self._read(SUBMISSIONS_KEY)
        if not isinstance(data, dict):
            return {}

        states: dict[str, SubmissionState] = {}
        for item_id, raw in data.items():
            if not isinstance(raw, dict):
                continue
            try:
                states[item_id] = SubmissionState.from_dict(raw)
            except ValidationError:
                logger.debug(f"Dropping invalid submission state for {item_id!r}")
        return states

    def save_submissions(self, states: dict[str, SubmissionState]) -> None:
        self._write(SUBMISSIONS_KEY, {item_id: s.to_dict() for item_id, s in states.items()})

    def clear_submissions(self) -> None:
        self._write(SUBMISSIONS_KEY, {})

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _read(self, key: str):
        blob = self.storage.load(key)
        if not blob:
            return None
        try:
            return json.loads(blob)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupted record under {key!r}: {e}")
            return None

    def _write(self, key: str, value) -> None:
        try:
            self.storage.save(key, json.dumps(value))
        except StorageError as e:
            logger.error(f"Failed to save {key!r}: {e}")
