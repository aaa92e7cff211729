"""Recallcore - FSRS spaced-repetition scheduling for flashcard applications."""

from .models import CardState, Grade, MemoryState, ReviewOutcome
from .config import SchedulerConfig, SchedulerSettings
from .constants import DEFAULT_PARAMETERS, DEFAULT_DESIRED_RETENTION
from .converter import convert, to_record
from .exceptions import (
    ConcurrentModificationError,
    InvalidGradeError,
    MalformedCardError,
)
from .review_queue import DueCard, select_due_cards
from .scheduler import FSRS_Scheduler, schedule
from .session import ReviewSession, SessionState
from .store import CardStore, InMemoryCardStore, JsonFileCardStore

__all__ = [
    "CardState",
    "Grade",
    "MemoryState",
    "ReviewOutcome",
    "SchedulerConfig",
    "SchedulerSettings",
    "DEFAULT_PARAMETERS",
    "DEFAULT_DESIRED_RETENTION",
    "convert",
    "to_record",
    "ConcurrentModificationError",
    "InvalidGradeError",
    "MalformedCardError",
    "DueCard",
    "select_due_cards",
    "FSRS_Scheduler",
    "schedule",
    "ReviewSession",
    "SessionState",
    "CardStore",
    "InMemoryCardStore",
    "JsonFileCardStore",
]
