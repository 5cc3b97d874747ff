"""Card collection store: the single owner of scheduler state.

The store holds the one authoritative :class:`SchedulerState`, applies the
pure transitions from :mod:`kid_flashcards.session` one at a time and
persists ratings in batches at natural checkpoints (session completion,
leaving a session, switching card sets, closing). In guest mode nothing but
the preferred card set is persisted.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from kid_flashcards import content, repository
from kid_flashcards import session as transitions
from kid_flashcards.config import (
    CONTENT_DIR, DEFAULT_CARD_SET_ID, MAX_PENDING_RETRIES, MAX_SESSION_CARDS,
)
from kid_flashcards.errors import MalformedContent, PersistenceFailure
from kid_flashcards.models import CardSet, Flashcard, ReviewSession
from kid_flashcards.session import SchedulerState
from kid_flashcards.stats import card_set_progress

logger = logging.getLogger(__name__)

LOCAL_PROFILE = "local"


@dataclass
class PendingOperation:
    """A batch write that failed and is waiting to be retried."""

    user_id: str
    card_set_id: str
    cards: list
    created_at: datetime = field(default_factory=datetime.now)
    retry_count: int = 0
    max_retries: int = MAX_PENDING_RETRIES


class FlashcardStore:
    def __init__(
        self,
        db_path: Optional[str] = None,
        user_id: Optional[str] = None,
        content_dir: Path = CONTENT_DIR,
        session_limit: int = MAX_SESSION_CARDS,
    ):
        self.db_path = db_path
        self.user_id = user_id
        self.content_dir = content_dir
        self.session_limit = session_limit
        self.state = SchedulerState()
        self.card_set: Optional[CardSet] = None
        self.retry_queue: list[PendingOperation] = []
        self.last_error: Optional[str] = None

    # -- read-only projections -------------------------------------------

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def cards(self) -> tuple:
        return self.state.cards

    @property
    def stats(self) -> dict:
        return self.state.stats

    @property
    def session(self) -> Optional[ReviewSession]:
        return self.state.session

    @property
    def current_card(self) -> Optional[Flashcard]:
        return self.state.current_card

    @property
    def is_showing_back(self) -> bool:
        return self.state.is_showing_back

    def card_sets(self) -> list[CardSet]:
        return content.load_card_sets(self.content_dir)

    # -- loading ---------------------------------------------------------

    def _profile(self) -> str:
        return self.user_id or LOCAL_PROFILE

    def preferred_card_set_id(self) -> str:
        if self.db_path is None:
            return DEFAULT_CARD_SET_ID
        try:
            return repository.get_setting(
                self.db_path, self._profile(), "last_card_set", DEFAULT_CARD_SET_ID
            )
        except PersistenceFailure as e:
            logger.warning(f"Could not read the preferred card set: {e}")
            return DEFAULT_CARD_SET_ID

    def _load_collection(self, card_set: CardSet, now: datetime) -> list[Flashcard]:
        """Content cards with the user's stored versions laid over them by id."""
        cards = content.load_cards(card_set, now, self.content_dir)
        if self.is_guest:
            return cards
        return self._overlay(cards, repository.load_cards(self.db_path, self.user_id, card_set.id))

    @staticmethod
    def _overlay(cards: list[Flashcard], stored: list[Flashcard]) -> list[Flashcard]:
        if not stored:
            return cards
        by_id = {card.id: card for card in stored}
        return [by_id.get(card.id, card) for card in cards]

    def select_card_set(self, card_set_id: Optional[str] = None, now: Optional[datetime] = None) -> CardSet:
        """Switch the active collection to another card set.

        Content errors for a non-default set fall back to the default set.
        """
        now = now or datetime.now()
        card_set_id = card_set_id or self.preferred_card_set_id()
        self.flush()
        card_set = content.get_card_set(card_set_id, self.content_dir)
        try:
            if card_set is None:
                raise MalformedContent(f"Unknown card set: {card_set_id}")
            cards = self._load_collection(card_set, now)
        except MalformedContent as e:
            if card_set_id == DEFAULT_CARD_SET_ID:
                raise
            logger.warning(f"Falling back to {DEFAULT_CARD_SET_ID}: {e}")
            self.last_error = str(e)
            return self.select_card_set(DEFAULT_CARD_SET_ID, now)

        self.card_set = card_set
        self.state = transitions.load_cards(self.state, cards, now)
        self._remember_card_set(card_set.id)
        return card_set

    def _remember_card_set(self, card_set_id: str) -> None:
        if self.db_path is None:
            return
        try:
            repository.set_setting(self.db_path, self._profile(), "last_card_set", card_set_id)
        except PersistenceFailure as e:
            logger.warning(f"Could not remember card set {card_set_id}: {e}")

    # -- session actions -------------------------------------------------

    def start_review(self, now: Optional[datetime] = None) -> bool:
        """Start a session over the top due cards. Returns False if none are due."""
        self.state = transitions.start_review(self.state, now=now, limit=self.session_limit)
        return self.state.session is not None

    def reveal_back(self) -> None:
        self.state = transitions.reveal_back(self.state)

    def rate(self, card_id: str, quality: int, now: Optional[datetime] = None) -> None:
        self.state = transitions.rate_card(self.state, card_id, quality, now)
        self._after_rating(now)

    def know(self, card_id: str, now: Optional[datetime] = None) -> None:
        self.state = transitions.know_card(self.state, card_id, now)
        self._after_rating(now)

    def _after_rating(self, now: Optional[datetime]) -> None:
        if self.state.session.is_complete:
            self.state = transitions.complete_session(self.state, now)
            self.flush()

    def reset_session(self) -> None:
        self.state = transitions.reset_session(self.state)
        self.flush()

    def review_again(self, now: Optional[datetime] = None) -> bool:
        self.state = transitions.review_again(self.state, now, self.session_limit)
        return self.state.session is not None

    def reset_progress(self, now: Optional[datetime] = None) -> None:
        self.state = transitions.reset_progress(self.state, now)
        self.flush()

    # -- persistence -----------------------------------------------------

    def flush(self) -> int:
        """Write every pending card update as one batch.

        The pending mapping is always drained completely. Queued writes for the
        same card set are folded into the batch, newer cards winning, so a
        retry can never land after a newer save. A failed write is queued for
        retry; in-memory scheduling state is never rolled back.
        Returns the number of cards in the batch.
        """
        self.state, batch = transitions.drain_pending(self.state)
        if not batch:
            return 0
        if self.is_guest or self.card_set is None:
            logger.debug(f"Guest mode: {len(batch)} card updates kept in memory only")
            return len(batch)
        queued = self._take_queued(self.user_id, self.card_set.id)
        merged = {card.id: card for card in queued + batch}
        operation = PendingOperation(self.user_id, self.card_set.id, list(merged.values()))
        self._write(operation)
        return len(batch)

    def _take_queued(self, user_id: str, card_set_id: str) -> list[Flashcard]:
        """Remove queued writes for one card set and return their cards, oldest first."""
        cards = []
        remaining = []
        for operation in self.retry_queue:
            if operation.user_id == user_id and operation.card_set_id == card_set_id:
                cards.extend(operation.cards)
            else:
                remaining.append(operation)
        self.retry_queue = remaining
        return cards

    def _write(self, operation: PendingOperation) -> bool:
        try:
            repository.save_cards_batch(
                self.db_path, operation.user_id, operation.card_set_id, operation.cards
            )
            if self.card_set is not None and operation.card_set_id == self.card_set.id:
                repository.save_card_set_progress(
                    self.db_path, operation.user_id,
                    card_set_progress(list(self.state.cards), self.card_set.id),
                )
        except PersistenceFailure as e:
            operation.retry_count += 1
            self.last_error = str(e)
            if operation.retry_count < operation.max_retries:
                logger.warning(f"Saving {len(operation.cards)} cards failed, queued for retry: {e}")
                self.retry_queue.append(operation)
            else:
                logger.error(f"Dropping {len(operation.cards)} card updates after {operation.retry_count} attempts")
            return False
        return True

    def retry_pending(self) -> int:
        """Replay queued writes. Returns how many succeeded."""
        queued, self.retry_queue = self.retry_queue, []
        return sum(1 for operation in queued if self._write(operation))

    def load_all_progress(self) -> dict[str, dict]:
        if self.is_guest:
            return {}
        return repository.load_all_card_set_progress(self.db_path, self.user_id)

    # -- accounts --------------------------------------------------------

    def sign_in(self, user_id: str, now: Optional[datetime] = None) -> None:
        """Switch from guest to ``user_id``, carrying guest progress over.

        If the user has nothing stored for the active set, the guest
        collection becomes their snapshot; otherwise the stored one wins.
        """
        now = now or datetime.now()
        self.flush()
        guest_cards = list(self.state.cards)
        self.user_id = user_id
        card_set = self.card_set
        if card_set is None:
            self.select_card_set(now=now)
            return
        stored = repository.load_cards(self.db_path, user_id, card_set.id)
        if stored:
            cards = self._overlay(content.load_cards(card_set, now, self.content_dir), stored)
            self.state = transitions.load_cards(self.state, cards, now)
        elif guest_cards:
            logger.info(f"Migrating {len(guest_cards)} guest cards to {user_id}")
            self._write(PendingOperation(user_id, card_set.id, guest_cards))
        self._remember_card_set(card_set.id)

    def sign_out(self, now: Optional[datetime] = None) -> None:
        self.flush()
        self.user_id = None
        self.select_card_set(self.card_set.id if self.card_set else None, now)

    def close(self) -> None:
        self.flush()
