"""
Core data types for the recallcore scheduler: card states, grades and the
per-card FSRS memory state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import DIFFICULTY_MAX, DIFFICULTY_MIN
from .exceptions import InvalidGradeError


class CardState(IntEnum):
    """
    Represents the FSRS-defined state of a card's memory trace.
    """

    New = 0
    Learning = 1
    Review = 2
    Relearning = 3


class Grade(IntEnum):
    """
    Represents the user's rating of their recall performance.
    """

    Again = 1
    Hard = 2
    Good = 3
    Easy = 4


def coerce_grade(value: Any) -> Grade:
    """
    Turn a grade given as a Grade, an int (1-4) or a name/number string into a Grade.

    Raises:
        InvalidGradeError: If the value does not name one of the four grades.
    """
    if isinstance(value, Grade):
        return value
    if isinstance(value, bool):
        raise InvalidGradeError(f"Invalid grade: {value!r}. Must be 1-4 (1=Again, 2=Hard, 3=Good, 4=Easy).")
    if isinstance(value, int):
        try:
            return Grade(value)
        except ValueError as e:
            raise InvalidGradeError(
                f"Invalid grade: {value}. Must be 1-4 (1=Again, 2=Hard, 3=Good, 4=Easy).", e
            ) from e
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return coerce_grade(int(text))
        try:
            return Grade[text.title()]
        except KeyError as e:
            raise InvalidGradeError(
                f"Invalid grade: {value!r}. Must be one of Again, Hard, Good, Easy.", e
            ) from e
    raise InvalidGradeError(f"Invalid grade: {value!r}. Must be 1-4 (1=Again, 2=Hard, 3=Good, 4=Easy).")


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


class MemoryState(BaseModel):
    """
    FSRS memory state of a single flashcard, as persisted by the storage layer.

    Instances are immutable; the scheduler returns a new MemoryState per review.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stability: Optional[float] = Field(
        default=None,
        description="Days until recall probability falls to 90%. None until first review.",
    )
    difficulty: Optional[float] = Field(
        default=None,
        description="Intrinsic difficulty on the 1-10 scale. None until first review.",
    )
    due: datetime = Field(
        ...,
        description="UTC timestamp at which the card becomes reviewable.",
    )
    lapses: int = Field(
        default=0,
        ge=0,
        description="Times the card was forgotten after being learned.",
    )
    state: CardState = Field(
        default=CardState.New,
        description="The current FSRS state of the card.",
    )
    last_review: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp of the most recent review.",
    )
    step: Optional[int] = Field(
        default=None,
        ge=0,
        description="Index of the current learning step (Learning cards only).",
    )

    @field_validator("due", "last_review")
    @classmethod
    def normalize_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store every timestamp as an aware UTC datetime."""
        return ensure_utc(v) if v is not None else None

    @field_validator("stability")
    @classmethod
    def check_stability(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and (not math.isfinite(v) or v <= 0):
            raise ValueError(f"stability must be a positive finite number, got {v}")
        return v

    @field_validator("difficulty")
    @classmethod
    def check_difficulty(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not (
            math.isfinite(v) and DIFFICULTY_MIN <= v <= DIFFICULTY_MAX
        ):
            raise ValueError(
                f"difficulty must lie in [{DIFFICULTY_MIN}, {DIFFICULTY_MAX}], got {v}"
            )
        return v

    @model_validator(mode="after")
    def check_review_history(self) -> "MemoryState":
        """New cards have no review history; every other state has a full one."""
        history = (self.last_review, self.stability, self.difficulty)
        if self.state == CardState.New:
            if any(v is not None for v in history):
                raise ValueError(
                    "A New card cannot carry last_review, stability or difficulty."
                )
        elif any(v is None for v in history):
            raise ValueError(
                f"A {self.state.name} card needs last_review, stability and difficulty."
            )
        return self

    @classmethod
    def new(cls, created_at: datetime, lapses: int = 0) -> "MemoryState":
        """State of a freshly created card: New and due immediately."""
        return cls(due=created_at, lapses=lapses, state=CardState.New)

    @property
    def is_new(self) -> bool:
        return self.state == CardState.New


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of scheduling one review."""

    state: MemoryState
    previous: MemoryState
    grade: Grade
    reviewed_at: datetime
    scheduled_interval: timedelta
    elapsed_days: int
    review_type: str
    lapse_recorded: bool

    @property
    def scheduled_days(self) -> int:
        """Whole days until the card is due again (0 for same-day steps)."""
        return self.scheduled_interval.days

    @property
    def due(self) -> datetime:
        return self.state.due
