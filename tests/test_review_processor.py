"""
Tests for the ReviewProcessor class.

The ReviewProcessor runs one read-convert-schedule-save cycle per rating and
is shared by the interactive session and any other caller that applies grades.
"""

import logging
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from recallcore.config import SchedulerConfig
from recallcore.exceptions import (
    CardNotFoundError,
    ConcurrentModificationError,
    InvalidGradeError,
    InvalidReviewTimeError,
    MalformedCardError,
)
from recallcore.models import CardState, Grade
from recallcore.review_processor import ReviewProcessor
from recallcore.scheduler import FSRS_Scheduler
from recallcore.store import InMemoryCardStore

from conftest import reviewed_record


class TestReviewProcessor:
    """Test the ReviewProcessor class."""

    @pytest.fixture
    def processor(self, card_store, scheduler):
        return ReviewProcessor(card_store, scheduler)

    def test_config_defaults_to_scheduler_config(self, card_store):
        config = SchedulerConfig(desired_retention=0.8)
        processor = ReviewProcessor(card_store, FSRS_Scheduler(config))
        assert processor.config is config

    def test_process_review_success(self, processor, card_store, now):
        """A rating is scheduled from the stored record and saved back."""
        outcome = processor.process_review(4, Grade.Good, now)

        assert outcome.previous.state == CardState.New
        assert outcome.state.state == CardState.Learning

        stored = card_store.get_card(4)
        assert stored.version == 1
        assert stored.record["state"] == int(CardState.Learning)
        assert stored.record["due"] == outcome.state.due.isoformat()
        assert stored.record["last_review"] == now.isoformat()
        assert stored.record["front"] == "Question 4"

    def test_consecutive_reviews_build_on_saved_state(self, processor, card_store, now):
        first = processor.process_review(4, Grade.Good, now)
        second = processor.process_review(4, Grade.Good, first.state.due)

        assert second.previous == first.state
        assert second.state.state == CardState.Review
        assert card_store.get_card(4).version == 2

    def test_lapse_is_persisted(self, processor, card_store, now):
        processor.process_review(2, Grade.Again, now)
        record = card_store.get_card(2).record
        assert record["lapses"] == 1
        assert record["state"] == int(CardState.Relearning)

    def test_process_review_default_timestamp(self, processor):
        before = datetime.now(timezone.utc)
        outcome = processor.process_review(4, "good")
        after = datetime.now(timezone.utc)

        assert before <= outcome.reviewed_at <= after

    def test_unknown_card(self, processor):
        with pytest.raises(CardNotFoundError):
            processor.process_review("nope", Grade.Good)

    def test_invalid_grade_leaves_card_untouched(self, processor, card_store, now):
        with pytest.raises(InvalidGradeError):
            processor.process_review(2, 7, now)
        assert card_store.get_card(2).version == 0

    def test_malformed_record(self, scheduler, now, caplog):
        store = InMemoryCardStore([reviewed_record("bad", now, difficulty=42.0)])
        processor = ReviewProcessor(store, scheduler)

        with caplog.at_level(logging.ERROR, logger="recallcore.review_processor"):
            with pytest.raises(MalformedCardError) as exc_info:
                processor.process_review("bad", Grade.Good, now)

        assert exc_info.value.card_id == "bad"
        assert "Failed to process review for card bad" in caplog.text
        assert store.get_card("bad").version == 0

    def test_concurrent_write_is_detected(self, card_store, scheduler, now, new_state):
        """A save that lands between our read and our write is not overwritten."""
        processor = ReviewProcessor(card_store, scheduler)
        original_get = card_store.get_card

        def get_then_race(card_id):
            stored = original_get(card_id)
            card_store.save_state(card_id, new_state, expected_version=stored.version)
            return stored

        with patch.object(card_store, "get_card", side_effect=get_then_race):
            with pytest.raises(ConcurrentModificationError):
                processor.process_review(2, Grade.Good, now)

        stored = card_store.get_card(2)
        assert stored.version == 1
        assert stored.record["state"] == int(CardState.New)

    def test_uses_given_scheduler(self, card_store, scheduler, now):
        mock_scheduler = MagicMock(wraps=scheduler)
        processor = ReviewProcessor(card_store, mock_scheduler, config=scheduler.config)

        processor.process_review(1, Grade.Easy, now)

        mock_scheduler.review.assert_called_once()
        memory_state, grade, reviewed_at = mock_scheduler.review.call_args.args
        assert memory_state.state == CardState.Review
        assert grade == Grade.Easy
        assert reviewed_at == now

    def test_review_earlier_than_last_review_fails(self, processor, now):
        with pytest.raises(InvalidReviewTimeError):
            processor.process_review(1, Grade.Good, now - timedelta(days=30))
