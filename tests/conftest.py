import sys
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from recallcore.config import SchedulerConfig
from recallcore.models import CardState, MemoryState
from recallcore.scheduler import FSRS_Scheduler
from recallcore.store import InMemoryCardStore


UTC = timezone.utc


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Temporarily change the process working directory to the test's tmpdir and prepend that tmpdir to sys.path.

    Keeps stray .env files in the repository from leaking RECALLCORE_* settings into tests.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


@pytest.fixture
def now() -> datetime:
    """A fixed review time used as 'now' throughout the tests."""
    return datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def config() -> SchedulerConfig:
    """Default scheduler configuration (fuzzing off, so results are deterministic)."""
    return SchedulerConfig()


@pytest.fixture
def scheduler(config: SchedulerConfig) -> FSRS_Scheduler:
    """Provides an FSRS_Scheduler instance with default parameters."""
    return FSRS_Scheduler(config=config)


@pytest.fixture
def new_state(now: datetime) -> MemoryState:
    """A card that has never been reviewed, due now."""
    return MemoryState.new(now)


@pytest.fixture
def review_state(now: datetime) -> MemoryState:
    """A learned card last reviewed ten days ago and due now."""
    return MemoryState(
        stability=10.0,
        difficulty=5.0,
        due=now,
        lapses=0,
        state=CardState.Review,
        last_review=now - timedelta(days=10),
    )


@pytest.fixture
def relearning_state(now: datetime) -> MemoryState:
    """A card forgotten ten minutes ago, now relearning."""
    return MemoryState(
        stability=2.5,
        difficulty=7.0,
        due=now,
        lapses=2,
        state=CardState.Relearning,
        last_review=now - timedelta(minutes=10),
    )


@pytest.fixture
def learning_state(now: datetime) -> MemoryState:
    """A card on its second learning step."""
    return MemoryState(
        stability=3.2602,
        difficulty=4.9,
        due=now,
        lapses=0,
        state=CardState.Learning,
        last_review=now - timedelta(minutes=10),
        step=1,
    )


def make_record(card_id: Any, **fields: Any) -> Dict[str, Any]:
    """A stored card record with front/back text and the given scheduling fields."""
    record: Dict[str, Any] = {
        "id": card_id,
        "front": f"Question {card_id}",
        "back": f"Answer {card_id}",
        "stability": None,
        "difficulty": None,
        "due": None,
        "lapses": 0,
        "state": 0,
        "last_review": None,
    }
    record.update(fields)
    return record


def reviewed_record(card_id: Any, due: datetime, /, **fields: Any) -> Dict[str, Any]:
    """A stored record of a card in Review state."""
    values: Dict[str, Any] = {
        "stability": 10.0,
        "difficulty": 5.0,
        "due": due.isoformat(),
        "state": 2,
        "last_review": (due - timedelta(days=10)).isoformat(),
    }
    values.update(fields)
    return make_record(card_id, **values)


@pytest.fixture
def deck_records(now: datetime) -> List[Dict[str, Any]]:
    """Five cards: due yesterday, due now, due tomorrow, new, due yesterday."""
    yesterday = now - timedelta(days=1)
    return [
        reviewed_record(1, yesterday),
        reviewed_record(2, now),
        reviewed_record(3, now + timedelta(days=1)),
        make_record(4),
        reviewed_record(5, yesterday),
    ]


@pytest.fixture
def card_store(deck_records: List[Dict[str, Any]]) -> InMemoryCardStore:
    return InMemoryCardStore(deck_records)
