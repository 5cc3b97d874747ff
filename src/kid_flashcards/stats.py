"""Dashboard statistics derived from card scheduling state."""
from datetime import datetime
from typing import Optional

from kid_flashcards.due import select_due
from kid_flashcards.models import Flashcard


def is_mastered(card: Flashcard) -> bool:
    return card.repetitions >= 1 and card.easiness_factor >= 2.0 and not card.is_new


def is_difficult(card: Flashcard) -> bool:
    # Overlaps is_mastered for EF in [2.0, 2.2)
    return card.easiness_factor < 2.2 and card.total_reviews > 0


def reviewed_today(cards: list[Flashcard], now: Optional[datetime] = None) -> list[Flashcard]:
    """Cards whose last rating falls on the current local calendar day."""
    today = (now or datetime.now()).date()
    return [card for card in cards if card.last_review_date.date() == today]


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def compute_stats(cards: list[Flashcard], now: Optional[datetime] = None) -> dict:
    now = now or datetime.now()
    return {
        "total_cards": len(cards),
        "due_cards": len(select_due(cards, now)),
        "mastered_cards": sum(1 for c in cards if is_mastered(c)),
        "difficult_cards": sum(1 for c in cards if is_difficult(c)),
        "total_reviews": sum(c.total_reviews for c in cards),
        "average_easiness_factor": _mean([c.easiness_factor for c in cards]),
        "average_quality": _mean([c.average_quality for c in cards]),
        "reviews_today": len(reviewed_today(cards, now)),
    }


def today_review_data(cards: list[Flashcard], now: Optional[datetime] = None) -> dict:
    due = select_due(cards, now)
    return {
        "total_due": len(due),
        "new_cards": sum(1 for c in cards if c.is_new),
        "review_cards": sum(1 for c in due if not c.is_new),
    }


def card_set_progress(cards: list[Flashcard], card_set_id: str) -> dict:
    """Summary record kept per card set for cross-device display."""
    reviewed = [c for c in cards if c.total_reviews > 0]
    total = len(cards)
    return {
        "card_set_id": card_set_id,
        "total_cards": total,
        "reviewed_cards": len(reviewed),
        "progress_percentage": round(len(reviewed) / total * 100) if total else 0,
        "last_review_date": max((c.last_review_date for c in reviewed), default=None),
    }
