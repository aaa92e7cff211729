"""
Shared review processing logic for recallcore.

The ReviewProcessor runs one read-modify-write cycle per rating:
1. Timestamp handling
2. Loading the card and the version it was read at
3. Converting the stored record into a memory state
4. Scheduler computation
5. Persisting the new state, guarded by the version read in step 2
6. Error handling
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .config import SchedulerConfig
from .converter import convert
from .models import ReviewOutcome
from .scheduler import BaseScheduler
from .store import CardStore

# Initialize logger
logger = logging.getLogger(__name__)


class ReviewProcessor:
    """
    Processes review submissions against a card store.

    The scheduler is pure; this class owns the clock read and the store access,
    and relies on the store's version check so that a card's next state is
    never computed from a stale read.
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: BaseScheduler,
        config: Optional[SchedulerConfig] = None,
    ):
        """
        Initialize the ReviewProcessor.

        Args:
            store: Card store used to load and persist card states
            scheduler: Scheduler used to compute next states
            config: Configuration for record conversion (defaults to the scheduler's)
        """
        self.store = store
        self.scheduler = scheduler
        self.config = config if config is not None else scheduler.config

    def process_review(
        self,
        card_id: Any,
        grade: Any,
        reviewed_at: Optional[datetime] = None,
    ) -> ReviewOutcome:
        """
        Apply a rating to a stored card and persist the result.

        Args:
            card_id: Identifier of the card in the store
            grade: User's grade (1-4: Again, Hard, Good, Easy)
            reviewed_at: Review timestamp (defaults to current time)

        Returns:
            The ReviewOutcome whose state has been saved

        Raises:
            CardNotFoundError: If the store does not know the card
            MalformedCardError: If the stored record is invalid
            InvalidGradeError: If the grade is invalid
            ConcurrentModificationError: If the card changed while being reviewed;
                re-read and retry
        """
        ts = reviewed_at or datetime.now(timezone.utc)

        logger.debug(f"Processing review for card {card_id} with grade {grade}")

        try:
            stored = self.store.get_card(card_id)
            memory_state = convert(stored.record, ts, self.config)
            outcome = self.scheduler.review(memory_state, grade, ts)
            self.store.save_state(
                card_id, outcome.state, expected_version=stored.version
            )
        except Exception:
            logger.exception(f"Failed to process review for card {card_id}")
            raise

        logger.debug(
            f"Review processed successfully for card {card_id}. "
            f"Next due: {outcome.state.due.isoformat()}, State: {outcome.state.state.name}"
        )
        return outcome
