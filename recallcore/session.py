"""
This module defines the ReviewSession class, the state machine behind an
interactive review session. It loads the due queue from a card store, gates
ratings on the answer being visible, applies one rating at a time through the
ReviewProcessor and tracks session progress.

    Loading -> Active | Empty | Error
    Active -> Active (next card) -> Finished
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .config import SchedulerConfig
from .exceptions import (
    CardStoreError,
    RatingInProgressError,
    SessionStateError,
)
from .models import Grade, ReviewOutcome, coerce_grade
from .review_processor import ReviewProcessor
from .review_queue import DueCard, select_due_cards
from .scheduler import BaseScheduler
from .store import CardStore

# Initialize logger
logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    EMPTY = "empty"
    ERROR = "error"
    FINISHED = "finished"


@dataclass
class SessionProgress:
    """Snapshot of how far a session has come."""

    total: int
    reviewed: int
    current_index: int
    grade_counts: Dict[Grade, int] = field(default_factory=dict)

    @property
    def remaining(self) -> int:
        return self.total - self.reviewed


class ReviewSession:
    """
    Drives one review session over the cards due in a store.

    Only one rating may be in flight at a time: each review depends on the
    state saved by the previous one, so a concurrent rate() call is rejected
    with RatingInProgressError instead of being applied out of order.
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: BaseScheduler,
        limit: Optional[int] = None,
        config: Optional[SchedulerConfig] = None,
    ):
        """
        Create a session; call start() to load the queue.

        Parameters:
            store (CardStore): Source of card records and target of new states.
            scheduler (BaseScheduler): Scheduler computing each review.
            limit (Optional[int]): Maximum cards in the session; defaults to config.session_limit.
            config (Optional[SchedulerConfig]): Defaults to the scheduler's configuration.
        """
        self.store = store
        self.scheduler = scheduler
        self.config = config if config is not None else scheduler.config
        self.limit = limit if limit is not None else self.config.session_limit
        self.session_uuid = uuid4()
        self.review_processor = ReviewProcessor(store, scheduler, self.config)
        self._rating_lock = threading.Lock()
        self._reset()

    def _reset(self) -> None:
        self.state = SessionState.LOADING
        self.queue: List[DueCard] = []
        self.current_index = 0
        self.answer_visible = False
        self.reviewed_count = 0
        self.error: Optional[str] = None
        self.grade_counts: Dict[Grade, int] = {grade: 0 for grade in Grade}
        self.outcomes: List[ReviewOutcome] = []

    def start(self, now: Optional[datetime] = None) -> SessionState:
        """
        Load the due queue and enter Active, Empty or Error.

        A store with no valid due cards gives an Empty session ("no cards due");
        only a failure of the store itself gives Error.
        """
        if self.is_submitting:
            raise RatingInProgressError("Cannot restart a session while a rating is being submitted.")

        self._reset()
        now = now or datetime.now(timezone.utc)
        logger.info(f"Starting review session {self.session_uuid}")

        try:
            records = self.store.list_cards()
        except CardStoreError as e:
            logger.error(f"Failed to load cards for session {self.session_uuid}: {e}")
            self.state = SessionState.ERROR
            self.error = str(e)
            return self.state

        self.queue = select_due_cards(records, now, self.limit, self.config)
        self.state = SessionState.ACTIVE if self.queue else SessionState.EMPTY
        logger.info(
            f"Session {self.session_uuid} loaded {len(self.queue)} cards ({self.state.value})."
        )
        return self.state

    def restart(self, now: Optional[datetime] = None) -> SessionState:
        """Start over with a freshly selected queue."""
        return self.start(now)

    @property
    def current_card(self) -> Optional[DueCard]:
        if self.state != SessionState.ACTIVE:
            return None
        return self.queue[self.current_index]

    @property
    def is_submitting(self) -> bool:
        return self._rating_lock.locked()

    @property
    def progress(self) -> SessionProgress:
        return SessionProgress(
            total=len(self.queue),
            reviewed=self.reviewed_count,
            current_index=self.current_index,
            grade_counts=dict(self.grade_counts),
        )

    def show_answer(self) -> None:
        if self.state != SessionState.ACTIVE:
            raise SessionStateError(
                f"No card to reveal while the session is {self.state.value}."
            )
        self.answer_visible = True

    def rate(
        self, grade: Any, reviewed_at: Optional[datetime] = None
    ) -> ReviewOutcome:
        """
        Apply a grade to the current card and move on to the next one.

        On failure the session stays on the same card with `error` set, so the
        rating can be retried.

        Raises:
            InvalidGradeError: If the grade is invalid.
            RatingInProgressError: If another rating is still being applied.
            SessionStateError: If the session is not Active or the answer is hidden.
        """
        grade = coerce_grade(grade)
        if not self._rating_lock.acquire(blocking=False):
            raise RatingInProgressError(
                "A rating is already being submitted for this session."
            )
        try:
            if self.state != SessionState.ACTIVE:
                raise SessionStateError(
                    f"Cannot rate a card while the session is {self.state.value}."
                )
            if not self.answer_visible:
                raise SessionStateError("Reveal the answer before rating the card.")

            card = self.queue[self.current_index]
            self.error = None
            try:
                outcome = self.review_processor.process_review(
                    card.card_id, grade, reviewed_at
                )
            except Exception as e:
                logger.error(f"Failed to submit review for card {card.card_id}: {e}")
                self.error = str(e)
                raise

            self.outcomes.append(outcome)
            self.grade_counts[grade] += 1
            self.reviewed_count += 1
            self._advance()
            return outcome
        finally:
            self._rating_lock.release()

    def _advance(self) -> None:
        self.current_index += 1
        self.answer_visible = False
        if self.current_index >= len(self.queue):
            self.state = SessionState.FINISHED
            logger.info(
                f"Session {self.session_uuid} finished after {self.reviewed_count} reviews."
            )

    def summary(self) -> Dict[str, Any]:
        """
        Summarize the session.

        Returns:
            dict: "session" (uuid string), "state", "total_cards", "reviewed_cards",
            "lapses" (reviews that recorded a lapse) and "grades" (count per grade name).
        """
        return {
            "session": str(self.session_uuid),
            "state": self.state.value,
            "total_cards": len(self.queue),
            "reviewed_cards": self.reviewed_count,
            "lapses": sum(1 for o in self.outcomes if o.lapse_recorded),
            "grades": {grade.name: count for grade, count in self.grade_counts.items()},
        }
