"""
Conversion between stored flashcard records and scheduler memory states.

Storage hands us loosely typed records (dicts from a JSON API, ORM rows, ...)
where never-reviewed cards have null FSRS fields. `convert` turns such a record
into a well-formed MemoryState, bootstrapping new cards, and rejects records
whose present values are invalid with MalformedCardError.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import SchedulerConfig
from .exceptions import MalformedCardError
from .models import CardState, MemoryState, ensure_utc

logger = logging.getLogger(__name__)

RECORD_FIELDS = (
    "id",
    "due",
    "stability",
    "difficulty",
    "state",
    "last_review",
    "lapses",
    "step",
)


class CardRecord(BaseModel):
    """Scheduling fields of a stored card, every one of them optional."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[Any] = None
    due: Optional[datetime] = None
    stability: Optional[float] = None
    difficulty: Optional[float] = None
    state: Optional[CardState] = None
    last_review: Optional[datetime] = None
    lapses: Optional[int] = Field(default=None, ge=0)
    step: Optional[int] = Field(default=None, ge=0)

    @field_validator("state", mode="before")
    @classmethod
    def parse_state(cls, v: Any) -> Any:
        """Accept state names ("Review") and digit strings besides plain ints."""
        if isinstance(v, bool):
            raise ValueError(f"state must be 0-3 or a state name, got {v!r}")
        if isinstance(v, str):
            text = v.strip()
            if text.isdigit():
                return int(text)
            try:
                return CardState[text.title()]
            except KeyError:
                raise ValueError(f"unknown card state {v!r}") from None
        return v


def record_card_id(record: Any) -> Optional[Any]:
    """Return the identifier of a stored record, if it has one."""
    if isinstance(record, Mapping):
        return record.get("id", record.get("card_id"))
    return getattr(record, "id", getattr(record, "card_id", None))


def _record_fields(record: Any) -> Dict[str, Any]:
    if isinstance(record, Mapping):
        fields = dict(record)
    elif isinstance(record, BaseModel):
        fields = record.model_dump()
    else:
        fields = {
            name: getattr(record, name)
            for name in RECORD_FIELDS
            if hasattr(record, name)
        }
        if record is None or not fields:
            raise MalformedCardError(
                f"Expected a card record, got {type(record).__name__}: {record!r}"
            )
    fields["id"] = record_card_id(record)
    return fields


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
        for err in error.errors()
    )


def convert(
    record: Any, now: datetime, config: Optional[SchedulerConfig] = None
) -> MemoryState:
    """
    Normalize a stored card record into a MemoryState.

    Args:
        record: Mapping or object with optional due, stability, difficulty,
            state, last_review, lapses and step fields.
        now: Current time; used as the due date of new cards stored without one.
        config: Scheduler configuration (only reject_inconsistent_records is used).

    Returns:
        The card's memory state. Records missing any of last_review, state,
        stability, difficulty or due are treated as new cards.

    Raises:
        MalformedCardError: If a present field holds an invalid value, or the
            record has a review history but no due date (unless the config
            allows restarting such cards).
    """
    if config is None:
        config = SchedulerConfig()
    fields = _record_fields(record)
    card_id = fields.get("id")

    try:
        parsed = CardRecord.model_validate(fields)
    except ValidationError as e:
        raise MalformedCardError(
            f"Card {card_id} has invalid scheduling data: {_describe(e)}",
            card_id=card_id,
            original_exception=e,
        ) from e

    history = (parsed.last_review, parsed.stability, parsed.difficulty)
    required = history + (parsed.state, parsed.due)

    if any(v is None for v in required):
        has_history = all(v is not None for v in history)
        if (
            parsed.due is None
            and has_history
            and parsed.state not in (None, CardState.New)
        ):
            if config.reject_inconsistent_records:
                raise MalformedCardError(
                    f"Card {card_id} has a review history but no due date.",
                    card_id=card_id,
                )
            logger.warning(
                f"Card {card_id} has a review history but no due date; restarting it as a new card."
            )
        due = parsed.due if parsed.due is not None else ensure_utc(now)
        return MemoryState.new(due, lapses=parsed.lapses or 0)

    step = None
    if parsed.state == CardState.Learning:
        step = parsed.step if parsed.step is not None else 0

    try:
        return MemoryState(
            stability=parsed.stability,
            difficulty=parsed.difficulty,
            due=parsed.due,
            lapses=parsed.lapses or 0,
            state=parsed.state,
            last_review=parsed.last_review,
            step=step,
        )
    except ValidationError as e:
        raise MalformedCardError(
            f"Card {card_id} has inconsistent scheduling data: {_describe(e)}",
            card_id=card_id,
            original_exception=e,
        ) from e


def to_record(state: MemoryState) -> Dict[str, Any]:
    """Render a memory state in the storage shape (ISO timestamps, int state)."""
    return {
        "stability": state.stability,
        "difficulty": state.difficulty,
        "due": state.due.isoformat(),
        "lapses": state.lapses,
        "state": int(state.state),
        "last_review": state.last_review.isoformat() if state.last_review else None,
        "step": state.step,
    }
