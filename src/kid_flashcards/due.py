"""Due-card selection and review priority."""
from datetime import datetime
from typing import Iterable, Optional

from kid_flashcards.config import MAX_SESSION_CARDS
from kid_flashcards.models import Flashcard


def is_due(card: Flashcard, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return card.next_review_date <= now


def select_due(cards: Iterable[Flashcard], now: Optional[datetime] = None) -> list[Flashcard]:
    """Due cards, keeping input order."""
    now = now or datetime.now()
    return [card for card in cards if is_due(card, now)]


def _priority_key(card: Flashcard, now: datetime) -> tuple:
    if is_due(card, now):
        days_overdue = (now - card.next_review_date).days
        return (0, -days_overdue, card.easiness_factor)
    return (1, card.next_review_date)


def prioritize(cards: Iterable[Flashcard], now: Optional[datetime] = None) -> list[Flashcard]:
    """Sort cards so the most urgent reviews come first.

    Due cards come first, most overdue (in whole days) leading, harder cards
    (lower easiness factor) first within the same day. Cards that are not due
    yet follow in order of their next review date.
    """
    now = now or datetime.now()
    return sorted(cards, key=lambda card: _priority_key(card, now))


def select_session_cards(
    cards: Iterable[Flashcard],
    now: Optional[datetime] = None,
    limit: int = MAX_SESSION_CARDS,
) -> list[Flashcard]:
    """The highest-priority due cards, capped at ``limit``."""
    now = now or datetime.now()
    return [card for card in prioritize(cards, now) if is_due(card, now)][:limit]
