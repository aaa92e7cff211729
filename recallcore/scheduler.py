# recallcore/scheduler.py

"""
Defines the BaseScheduler abstract class and the FSRS_Scheduler, which
integrates py-fsrs as the memory model.

The scheduler is a pure function of its inputs: it never reads the clock and
never mutates the state it is given.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from fsrs import Card as FSRSCard  # type: ignore
from fsrs import Rating as FSRSRating  # type: ignore
from fsrs import Scheduler as PyFSRSScheduler  # type: ignore
from fsrs import State as FSRSState  # type: ignore
from pydantic import ValidationError

from .config import SchedulerConfig
from .exceptions import InvalidReviewTimeError, MalformedCardError
from .models import (
    CardState,
    Grade,
    MemoryState,
    ReviewOutcome,
    coerce_grade,
    ensure_utc,
)

logger = logging.getLogger(__name__)


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in recallcore.
    """

    config: SchedulerConfig

    @abstractmethod
    def review(
        self, state: MemoryState, grade: Any, reviewed_at: datetime
    ) -> ReviewOutcome:
        """
        Computes the outcome of reviewing a card with the given grade.

        Args:
            state: The card's memory state before the review.
            grade: The grade given (Grade, or 1=Again, 2=Hard, 3=Good, 4=Easy).
            reviewed_at: When the review happened. Naive datetimes are taken as UTC.

        Returns:
            A ReviewOutcome holding the new memory state.

        Raises:
            InvalidGradeError: If the grade is invalid.
            MalformedCardError: If the memory state holds out-of-range values.
        """
        pass

    def schedule(
        self, state: MemoryState, grade: Any, reviewed_at: datetime
    ) -> MemoryState:
        """Returns only the post-review memory state."""
        return self.review(state, grade, reviewed_at).state

    def preview(
        self, state: MemoryState, reviewed_at: datetime
    ) -> Dict[Grade, ReviewOutcome]:
        """Computes the outcome of every grade, e.g. to label the rating buttons."""
        return {grade: self.review(state, grade, reviewed_at) for grade in Grade}


class FSRS_Scheduler(BaseScheduler):
    """
    FSRS (Free Spaced Repetition Scheduler) implementation for recallcore.
    This scheduler uses the py-fsrs library to compute stability, difficulty
    and intervals, and applies recallcore's own state and lapse rules on top.
    """

    REVIEW_TYPE_MAP = {
        CardState.New: "learn",
        CardState.Learning: "learn",
        CardState.Review: "review",
        CardState.Relearning: "relearn",
    }

    RATING_MAP = {
        Grade.Again: FSRSRating.Again,
        Grade.Hard: FSRSRating.Hard,
        Grade.Good: FSRSRating.Good,
        Grade.Easy: FSRSRating.Easy,
    }

    STATE_MAP = {
        CardState.Learning: FSRSState.Learning,
        CardState.Review: FSRSState.Review,
        CardState.Relearning: FSRSState.Relearning,
    }

    def __init__(self, config: Optional[SchedulerConfig] = None):
        if config is None:
            config = SchedulerConfig()
        self.config = config

        self.fsrs_scheduler = PyFSRSScheduler(
            parameters=tuple(self.config.parameters),
            desired_retention=self.config.desired_retention,
            learning_steps=tuple(self.config.learning_steps),
            relearning_steps=tuple(self.config.relearning_steps),
            maximum_interval=self.config.max_interval,
            enable_fuzzing=self.config.enable_fuzzing,
        )

    def _check_state(self, state: MemoryState) -> None:
        """Re-validates the state; model_copy(update=...) bypasses validation."""
        try:
            MemoryState.model_validate(state.model_dump())
        except ValidationError as e:
            raise MalformedCardError(
                f"Cannot schedule a card with invalid memory state: {e.errors()[0]['msg']}",
                original_exception=e,
            ) from e

    def _to_fsrs_card(self, state: MemoryState) -> FSRSCard:
        """Builds the py-fsrs card for a memory state."""
        if state.is_new:
            # py-fsrs has no New state: a new card is a Learning card at step 0
            # without stability or difficulty.
            return FSRSCard(state=FSRSState.Learning, step=0, due=state.due)

        if state.state == CardState.Learning:
            step = state.step or 0
        elif state.state == CardState.Relearning:
            # Past the last relearning step: any passing grade graduates to Review.
            step = len(self.config.relearning_steps)
        else:
            step = None

        return FSRSCard(
            state=self.STATE_MAP[state.state],
            step=step,
            stability=state.stability,
            difficulty=state.difficulty,
            due=state.due,
            last_review=state.last_review,
        )

    def _from_fsrs_state(self, fsrs_state: FSRSState) -> CardState:
        # py-fsrs states share names with Learning, Review and Relearning.
        return CardState[fsrs_state.name.title()]

    def review(
        self, state: MemoryState, grade: Any, reviewed_at: datetime
    ) -> ReviewOutcome:
        grade = coerce_grade(grade)
        self._check_state(state)
        utc_review_ts = ensure_utc(reviewed_at)

        if state.last_review is not None and utc_review_ts < state.last_review:
            raise InvalidReviewTimeError(
                f"Review at {utc_review_ts.isoformat()} precedes the last review "
                f"at {state.last_review.isoformat()}."
            )

        updated_fsrs_card, _ = self.fsrs_scheduler.review_card(
            self._to_fsrs_card(state),
            self.RATING_MAP[grade],
            review_datetime=utc_review_ts,
        )
        new_card_state = self._from_fsrs_state(updated_fsrs_card.state)

        # py-fsrs keeps no lapse count: a lapse is Again on a learned card.
        lapse_recorded = grade == Grade.Again and state.state in (
            CardState.Review,
            CardState.Relearning,
        )
        lapses = state.lapses + 1 if lapse_recorded else state.lapses

        new_state = MemoryState(
            stability=updated_fsrs_card.stability,
            difficulty=updated_fsrs_card.difficulty,
            due=updated_fsrs_card.due,
            lapses=lapses,
            state=new_card_state,
            last_review=utc_review_ts,
            step=(
                updated_fsrs_card.step
                if new_card_state == CardState.Learning
                else None
            ),
        )

        if state.last_review is not None:
            elapsed_days = (utc_review_ts - state.last_review).days
        else:
            elapsed_days = 0

        logger.debug(
            f"Scheduled {state.state.name} card graded {grade.name}: "
            f"{new_card_state.name}, stability={new_state.stability:.4f}, "
            f"difficulty={new_state.difficulty:.4f}, due={new_state.due.isoformat()}"
        )

        return ReviewOutcome(
            state=new_state,
            previous=state,
            grade=grade,
            reviewed_at=utc_review_ts,
            scheduled_interval=new_state.due - utc_review_ts,
            elapsed_days=elapsed_days,
            review_type=self.REVIEW_TYPE_MAP[state.state],
            lapse_recorded=lapse_recorded,
        )

    def retrievability(self, state: MemoryState, at: datetime) -> float:
        """
        Probability of recalling the card at the given time.

        New cards have no memory trace and report 0.0.
        """
        if state.is_new:
            return 0.0
        self._check_state(state)
        return float(
            self.fsrs_scheduler.get_card_retrievability(
                self._to_fsrs_card(state), ensure_utc(at)
            )
        )


def schedule(
    state: MemoryState,
    grade: Any,
    reviewed_at: datetime,
    config: Optional[SchedulerConfig] = None,
) -> MemoryState:
    """Schedules one review with a scheduler built from the given configuration."""
    return FSRS_Scheduler(config).schedule(state, grade, reviewed_at)
