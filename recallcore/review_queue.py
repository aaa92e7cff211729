"""
Review queue selection: which cards are due at a given moment, and in what order.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional

from .config import SchedulerConfig
from .converter import convert, record_card_id
from .exceptions import MalformedCardError
from .models import MemoryState, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueCard:
    """A card selected for review, with its normalized memory state."""

    card_id: Any
    memory_state: MemoryState
    record: Any
    position: int


def _eligible_cards(
    cards: Iterable[Any], now: datetime, config: SchedulerConfig
) -> List[DueCard]:
    eligible: List[DueCard] = []
    for position, record in enumerate(cards):
        try:
            memory_state = convert(record, now, config)
        except MalformedCardError as e:
            logger.warning(f"Skipping card {e.card_id}: {e}")
            continue
        if memory_state.is_new or memory_state.due <= now:
            eligible.append(
                DueCard(
                    card_id=record_card_id(record),
                    memory_state=memory_state,
                    record=record,
                    position=position,
                )
            )
    return eligible


def select_due_cards(
    cards: Iterable[Any],
    now: datetime,
    limit: Optional[int] = None,
    config: Optional[SchedulerConfig] = None,
) -> List[DueCard]:
    """
    Select the cards eligible for review at `now`, earliest due first.

    A card is eligible when its due date has passed or it is still New. Cards
    with equal due dates keep their input order. Malformed records are logged
    and skipped. The input records are never modified.

    Args:
        cards: Stored card records, in a stable order (e.g. creation order).
        now: The moment the session starts.
        limit: Maximum number of cards returned; defaults to config.session_limit.
        config: Scheduler configuration passed on to the converter.

    Raises:
        ValueError: If limit is smaller than 1.
    """
    if config is None:
        config = SchedulerConfig()
    if limit is None:
        limit = config.session_limit
    if limit < 1:
        raise ValueError(f"Session limit must be at least 1, got {limit}.")

    now = ensure_utc(now)
    eligible = _eligible_cards(cards, now, config)
    # sorted() is stable, so ties keep input order.
    queue = sorted(eligible, key=lambda c: c.memory_state.due)[:limit]
    logger.debug(
        f"Selected {len(queue)} of {len(eligible)} eligible cards due by {now.isoformat()}"
    )
    return queue


def count_due_cards(
    cards: Iterable[Any], now: datetime, config: Optional[SchedulerConfig] = None
) -> int:
    """Number of valid cards eligible for review at `now`, without a limit."""
    if config is None:
        config = SchedulerConfig()
    return len(_eligible_cards(cards, ensure_utc(now), config))
