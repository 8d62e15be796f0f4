"""
Persistence schemas for engine records.

Pydantic models validate every blob read back from storage; anything that
does not fit is rejected here and never reaches the domain layer. Field
aliases match the camelCase wire format shared with the host.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, field_validator

from .models import ReviewRecord, parse_calendar_date, parse_timestamp


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StoredReviewRecord(_WireModel):
    """One entry of the progress map."""

    question_id: StrictStr | None = Field(default=None, alias="questionId")
    current_box: StrictInt = Field(alias="currentBox")
    next_review_date: date = Field(alias="nextReviewDate")
    times_correct: StrictInt = Field(default=0, ge=0, alias="timesCorrect")
    times_incorrect: StrictInt = Field(default=0, ge=0, alias="timesIncorrect")
    last_reviewed: datetime = Field(alias="lastReviewed")
    last_answer_correct: StrictBool = Field(default=False, alias="lastAnswerCorrect")

    @field_validator("next_review_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> date:
        return parse_calendar_date(value)

    @field_validator("last_reviewed", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime:
        return parse_timestamp(value)

    def to_record(self, item_id: str) -> ReviewRecord:
        return ReviewRecord(
            item_id=item_id,
            current_box=self.current_box,
            next_review_date=self.next_review_date,
            times_correct=self.times_correct,
            times_incorrect=self.times_incorrect,
            last_reviewed=self.last_reviewed,
            last_answer_correct=self.last_answer_correct,
        )


def dump_review_record(record: ReviewRecord) -> dict[str, Any]:
    """Wire representation of a record (the inverse of StoredReviewRecord)."""
    return {
        "questionId": record.item_id,
        "currentBox": record.current_box,
        "nextReviewDate": record.next_review_date.isoformat(),
        "timesCorrect": record.times_correct,
        "timesIncorrect": record.times_incorrect,
        "lastReviewed": record.last_reviewed.isoformat() if record.last_reviewed else None,
        "lastAnswerCorrect": record.last_answer_correct,
    }


class StoredSession(_WireModel):
    """The persisted session pointer."""

    item_ids: list[StrictStr] = Field(alias="itemIds")
    created_at: StrictInt = Field(alias="createdAt")
    total_items_at_creation: StrictInt | None = Field(default=None, ge=0, alias="totalItemsAtCreation")


class StoredSubmission(_WireModel):
    """Submission state for one item of the current session."""

    is_submitted: StrictBool = Field(default=False, alias="isSubmitted")
    is_correct: StrictBool = Field(default=False, alias="isCorrect")
    submitted_answers: list[StrictInt] = Field(default_factory=list, alias="submittedAnswers")
    submitted_at: StrictInt | None = Field(default=None, alias="submittedAt")


class StoredSettings(_WireModel):
    """User settings blob."""

    daily_target: StrictInt | None = Field(default=None, alias="dailyTarget")
