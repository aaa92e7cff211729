import pytest
from datetime import datetime, timezone, timedelta

from pydantic import ValidationError

from recallcore.exceptions import InvalidGradeError
from recallcore.models import CardState, Grade, MemoryState, coerce_grade, ensure_utc


UTC = timezone.utc
NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


def _reviewed(**overrides):
    values = dict(
        stability=10.0,
        difficulty=5.0,
        due=NOW,
        lapses=0,
        state=CardState.Review,
        last_review=NOW - timedelta(days=10),
    )
    values.update(overrides)
    return MemoryState(**values)


# --- Grade Tests ---

class TestCoerceGrade:
    @pytest.mark.parametrize("value, expected", [
        (Grade.Hard, Grade.Hard),
        (1, Grade.Again),
        (4, Grade.Easy),
        ("3", Grade.Good),
        (" 2 ", Grade.Hard),
        ("easy", Grade.Easy),
        ("AGAIN", Grade.Again),
        ("Good", Grade.Good),
    ])
    def test_valid_grades(self, value, expected):
        assert coerce_grade(value) is expected

    @pytest.mark.parametrize("value", [0, 5, -1, "0", "excellent", "", None, 3.0, True, False])
    def test_invalid_grades(self, value):
        with pytest.raises(InvalidGradeError):
            coerce_grade(value)

    def test_invalid_grade_message_names_the_range(self):
        with pytest.raises(InvalidGradeError, match=r"Invalid grade: 7\. Must be 1-4 \(1=Again, 2=Hard, 3=Good, 4=Easy\)\."):
            coerce_grade(7)

    def test_enum_values(self):
        assert [int(g) for g in Grade] == [1, 2, 3, 4]
        assert [int(s) for s in CardState] == [0, 1, 2, 3]


class TestEnsureUtc:
    def test_naive_is_assumed_utc(self):
        naive = datetime(2024, 1, 1, 10, 0, 0)
        assert ensure_utc(naive) == datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)

    def test_offset_is_converted(self):
        plus_two = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        converted = ensure_utc(plus_two)
        assert converted.tzinfo == UTC
        assert converted.hour == 10

    def test_utc_is_unchanged(self):
        assert ensure_utc(NOW) is NOW


# --- MemoryState Model Tests ---

class TestMemoryState:
    def test_new_factory(self):
        state = MemoryState.new(NOW)
        assert state.state == CardState.New
        assert state.is_new
        assert state.due == NOW
        assert state.stability is None
        assert state.difficulty is None
        assert state.last_review is None
        assert state.lapses == 0
        assert state.step is None

    def test_new_factory_keeps_lapses(self):
        assert MemoryState.new(NOW, lapses=3).lapses == 3

    def test_reviewed_state_valid(self):
        state = _reviewed()
        assert state.state == CardState.Review
        assert not state.is_new

    def test_timestamps_normalized_to_utc(self):
        state = _reviewed(
            due=datetime(2024, 3, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2))),
            last_review=datetime(2024, 2, 20, 12, 0, 0),
        )
        assert state.due == NOW
        assert state.due.tzinfo == UTC
        assert state.last_review.tzinfo == UTC

    @pytest.mark.parametrize("stability", [0.0, -1.0, float("inf"), float("nan")])
    def test_stability_must_be_positive_and_finite(self, stability):
        with pytest.raises(ValidationError, match="stability"):
            _reviewed(stability=stability)

    @pytest.mark.parametrize("difficulty", [0.99, 10.01, -5.0, float("nan")])
    def test_difficulty_range(self, difficulty):
        with pytest.raises(ValidationError, match="difficulty"):
            _reviewed(difficulty=difficulty)

    @pytest.mark.parametrize("difficulty", [1.0, 10.0, 5.5])
    def test_difficulty_bounds_inclusive(self, difficulty):
        assert _reviewed(difficulty=difficulty).difficulty == difficulty

    def test_negative_lapses_rejected(self):
        with pytest.raises(ValidationError):
            _reviewed(lapses=-1)

    def test_new_card_cannot_carry_history(self):
        with pytest.raises(ValidationError, match="New card"):
            MemoryState(due=NOW, state=CardState.New, stability=1.0)

    @pytest.mark.parametrize("missing", ["stability", "difficulty", "last_review"])
    def test_reviewed_card_needs_full_history(self, missing):
        with pytest.raises(ValidationError, match="needs last_review"):
            _reviewed(**{missing: None})

    def test_frozen(self):
        state = _reviewed()
        with pytest.raises(ValidationError):
            state.lapses = 3

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            MemoryState(due=NOW, front="Q?")
