"""
Card storage collaborators.

The scheduler itself performs no I/O. Whatever persists cards must implement
CardStore and guarantee causal ordering: a card's next state is always computed
from its latest saved state. The stores here do that with optimistic
concurrency, a version number that save_state checks and bumps.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Union

from .converter import record_card_id, to_record
from .exceptions import CardNotFoundError, CardStoreError, ConcurrentModificationError
from .models import MemoryState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredCard:
    """A stored card record together with the version it was read at."""

    card_id: Any
    record: Dict[str, Any]
    version: int


class CardStore(Protocol):
    def list_cards(self) -> List[Dict[str, Any]]:
        """All card records, in a stable order (e.g. creation order)."""
        ...

    def get_card(self, card_id: Any) -> StoredCard:
        """The card's current record and version."""
        ...

    def save_state(
        self, card_id: Any, state: MemoryState, expected_version: int
    ) -> StoredCard:
        """
        Persist a new memory state if the card is still at expected_version.

        Raises:
            ConcurrentModificationError: If the card changed since it was read.
        """
        ...


class InMemoryCardStore:
    """Thread-safe, insertion-ordered card store kept in memory."""

    def __init__(self, records: Iterable[Mapping[str, Any]] = ()):
        self._lock = threading.Lock()
        self._cards: Dict[Any, StoredCard] = {}
        for record in records:
            self._insert(record)

    def _insert(self, record: Mapping[str, Any]) -> StoredCard:
        data = dict(record)
        version = int(data.pop("version", 0))
        card_id = record_card_id(data)
        if card_id is None:
            raise CardStoreError(f"Card record without an id: {data!r}")
        if card_id in self._cards:
            raise CardStoreError(f"Duplicate card id: {card_id!r}")
        stored = StoredCard(card_id=card_id, record=data, version=version)
        self._cards[card_id] = stored
        return stored

    def _persist(self, cards: Dict[Any, StoredCard]) -> None:
        """Hook for durable subclasses; called before a save is committed."""
        pass

    def add_card(self, card_id: Any, created_at: datetime, **fields: Any) -> StoredCard:
        """Create a card with a fresh New memory state due at created_at."""
        record = {"id": card_id, **fields, **to_record(MemoryState.new(created_at))}
        with self._lock:
            if card_id in self._cards:
                raise CardStoreError(f"Duplicate card id: {card_id!r}")
            cards = dict(self._cards)
            cards[card_id] = StoredCard(card_id=card_id, record=record, version=0)
            self._persist(cards)
            self._cards = cards
            return copy.deepcopy(cards[card_id])

    def list_cards(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(card.record) for card in self._cards.values()]

    def get_card(self, card_id: Any) -> StoredCard:
        with self._lock:
            try:
                return copy.deepcopy(self._cards[card_id])
            except KeyError:
                raise CardNotFoundError(f"Card {card_id!r} not found.") from None

    def save_state(
        self, card_id: Any, state: MemoryState, expected_version: int
    ) -> StoredCard:
        with self._lock:
            try:
                current = self._cards[card_id]
            except KeyError:
                raise CardNotFoundError(f"Card {card_id!r} not found.") from None

            if current.version != expected_version:
                raise ConcurrentModificationError(
                    f"Card {card_id!r} was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})."
                )

            cards = dict(self._cards)
            cards[card_id] = StoredCard(
                card_id=card_id,
                record={**current.record, **to_record(state)},
                version=current.version + 1,
            )
            self._persist(cards)
            self._cards = cards
            logger.debug(f"Saved card {card_id!r} at version {current.version + 1}")
            return copy.deepcopy(cards[card_id])


class JsonFileCardStore(InMemoryCardStore):
    """
    Card store backed by a JSON file holding a list of card records.

    Every save rewrites the file atomically. Each record keeps its "version".
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        try:
            with self.path.open("r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CardStoreError(f"Could not read card file {self.path}: {e}", e) from e

        if not isinstance(records, list) or not all(
            isinstance(r, dict) for r in records
        ):
            raise CardStoreError(
                f"Card file {self.path} must contain a JSON list of objects."
            )
        super().__init__(records)

    def _persist(self, cards: Dict[Any, StoredCard]) -> None:
        payload = [{**card.record, "version": card.version} for card in cards.values()]
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, default=str)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Could not write card file {self.path}: {e}")
            raise CardStoreError(f"Could not write card file {self.path}: {e}", e) from e
