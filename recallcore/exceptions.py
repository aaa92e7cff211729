from typing import Any, Optional


class RecallcoreError(Exception):
    """Base exception for recallcore errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class MalformedCardError(RecallcoreError):
    """Raised when a stored card record holds invalid scheduling data.

    Callers building a review session should skip the card rather than abort.
    """

    def __init__(
        self,
        message: str,
        card_id: Optional[Any] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message, original_exception)
        self.card_id = card_id


class InvalidGradeError(RecallcoreError, ValueError):
    """Raised when a grade is outside Again/Hard/Good/Easy (1-4)."""

    pass


class InvalidReviewTimeError(RecallcoreError, ValueError):
    """Raised when a review timestamp precedes the card's last review."""

    pass


class CardStoreError(RecallcoreError):
    """Raised for I/O failures inside a card store."""

    pass


class CardNotFoundError(CardStoreError):
    """Raised when a card id is unknown to the store."""

    pass


class ConcurrentModificationError(CardStoreError):
    """Raised when a card changed between read and write.

    The caller should re-read the card and retry the review.
    """

    pass


class SessionStateError(RecallcoreError):
    """Raised when a session action is not allowed in its current state."""

    pass


class RatingInProgressError(SessionStateError):
    """Raised when a rating is submitted while another is still being applied."""

    pass
