"""Review session state machine.

The whole scheduler lives in a single :class:`SchedulerState` value. Every
user action is a pure function taking the current state and returning the
next one; the caller owns the one authoritative instance and applies the
transitions one at a time.

Session lifecycle::

    NoSession --start_review--> Active --rate_card (last)--> Complete
        ^                          |                             |
        +------ reset_session -----+-------- reset_session ------+

Inside ``Active`` each card is first shown front side up; ``reveal_back``
turns it over. ``rate_card`` may be issued from either side (``know_card`` is
the front-side EASY shortcut).
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Optional

from kid_flashcards.config import MAX_SESSION_CARDS
from kid_flashcards.due import select_due, select_session_cards
from kid_flashcards.errors import InvalidTransition
from kid_flashcards.models import Flashcard, ReviewSession
from kid_flashcards.sm2 import Rating, apply_rating, default_schedule
from kid_flashcards.stats import compute_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerState:
    cards: tuple = ()
    due_cards: tuple = ()
    session: Optional[ReviewSession] = None
    current_card: Optional[Flashcard] = None
    is_showing_back: bool = False
    stats: dict = field(default_factory=lambda: compute_stats([]))
    # Card id -> latest updated card, in first-rated order
    pending_writes: dict = field(default_factory=dict)


def _refresh(state: SchedulerState, cards: Iterable[Flashcard], now: datetime, **changes) -> SchedulerState:
    cards = tuple(cards)
    return replace(
        state,
        cards=cards,
        due_cards=tuple(select_due(cards, now)),
        stats=compute_stats(list(cards), now),
        **changes,
    )


def load_cards(state: SchedulerState, cards: Iterable[Flashcard], now: Optional[datetime] = None) -> SchedulerState:
    """Replace the whole collection, discarding any session and pending writes."""
    now = now or datetime.now()
    return _refresh(
        state, cards, now,
        session=None, current_card=None, is_showing_back=False, pending_writes={},
    )


def _unique_by_id(cards: Iterable[Flashcard]) -> list[Flashcard]:
    seen = set()
    unique = []
    for card in cards:
        if card.id not in seen:
            seen.add(card.id)
            unique.append(card)
    return unique


def start_review(
    state: SchedulerState,
    cards: Optional[list[Flashcard]] = None,
    now: Optional[datetime] = None,
    limit: int = MAX_SESSION_CARDS,
) -> SchedulerState:
    """Begin a session over ``cards`` or, if omitted, the top due cards.

    Repeated card ids are dropped, keeping the first. An empty pool leaves
    the state unchanged.
    """
    now = now or datetime.now()
    if state.session is not None and not state.session.is_complete:
        raise InvalidTransition("A review session is already in progress")
    if cards is None:
        cards = select_session_cards(state.cards, now, limit)
    cards = _unique_by_id(cards)
    if not cards:
        logger.info("No due cards, review session not started")
        return state
    session = ReviewSession(cards=cards, start_time=now, total_cards=len(cards))
    logger.debug(f"Started review session with {len(cards)} cards")
    return replace(state, session=session, current_card=session.cards[0], is_showing_back=False)


def _require_active(state: SchedulerState) -> ReviewSession:
    if state.session is None:
        raise InvalidTransition("No active review session")
    if state.session.is_complete or state.current_card is None:
        raise InvalidTransition("Review session is already complete")
    return state.session


def reveal_back(state: SchedulerState) -> SchedulerState:
    session = _require_active(state)
    return replace(
        state,
        session=replace(session, is_showing_back=True),
        is_showing_back=True,
    )


def rate_card(
    state: SchedulerState, card_id: str, quality: int, now: Optional[datetime] = None
) -> SchedulerState:
    """Apply a rating to the current card and advance the session.

    AGAIN re-queues the card at the end of the session; any other rating
    marks it as reviewed. Raises :class:`InvalidTransition` without touching
    the state when there is no active session or ``card_id`` is stale.
    """
    now = now or datetime.now()
    quality = Rating(quality)
    session = _require_active(state)
    if card_id not in session.card_ids():
        raise InvalidTransition(f"Card {card_id!r} is not part of the current session")
    if card_id != state.current_card.id:
        raise InvalidTransition(
            f"Card {card_id!r} is not the current card ({state.current_card.id!r})"
        )
    stored = next((c for c in state.cards if c.id == card_id), None)
    if stored is None:
        raise InvalidTransition(f"Card {card_id!r} is not in the loaded collection")

    updated_card = apply_rating(stored, quality, now)
    all_cards = [updated_card if c.id == card_id else c for c in state.cards]

    session_cards = list(session.cards)
    reviewed_ids = set(session.reviewed_card_ids)
    easy_count, hard_count, again_count = session.easy_count, session.hard_count, session.again_count
    if quality == Rating.AGAIN:
        again_count += 1
        session_cards.append(updated_card)
    else:
        if quality == Rating.HARD:
            hard_count += 1
        else:
            easy_count += 1
        reviewed_ids.add(card_id)

    next_index = session.current_index + 1
    is_complete = next_index >= len(session_cards)
    next_session = replace(
        session,
        cards=session_cards,
        reviewed_card_ids=reviewed_ids,
        easy_count=easy_count,
        hard_count=hard_count,
        again_count=again_count,
        current_index=next_index,
        is_complete=is_complete,
        is_showing_back=False,
    )
    if is_complete:
        logger.debug(f"Review session complete: {len(reviewed_ids)} cards reviewed")

    pending = dict(state.pending_writes)
    pending[card_id] = updated_card
    return _refresh(
        state, all_cards, now,
        session=next_session,
        current_card=None if is_complete else session_cards[next_index],
        is_showing_back=False,
        pending_writes=pending,
    )


def know_card(state: SchedulerState, card_id: str, now: Optional[datetime] = None) -> SchedulerState:
    """"I know this" shortcut: an EASY rating that needs no reveal."""
    return rate_card(state, card_id, Rating.EASY, now)


def complete_session(state: SchedulerState, now: Optional[datetime] = None) -> SchedulerState:
    """Recompute due cards and statistics once a session has finished."""
    now = now or datetime.now()
    return _refresh(state, state.cards, now)


def reset_session(state: SchedulerState) -> SchedulerState:
    """Discard the session. Ratings already applied stay applied."""
    return replace(state, session=None, current_card=None, is_showing_back=False)


def review_again(
    state: SchedulerState, now: Optional[datetime] = None, limit: int = MAX_SESSION_CARDS
) -> SchedulerState:
    """Start a fresh session from a completed one if any cards are still due."""
    if state.session is None or not state.session.is_complete:
        raise InvalidTransition("Can only review again after completing a session")
    return start_review(reset_session(state), now=now, limit=limit)


def reset_progress(state: SchedulerState, now: Optional[datetime] = None) -> SchedulerState:
    """Restore default scheduling on every card and drop the session.

    Every card is marked for persistence so the reset reaches the store.
    """
    now = now or datetime.now()
    defaults = default_schedule(now)
    reset_cards = [replace(card, updated_at=now, **defaults) for card in state.cards]
    pending = dict(state.pending_writes)
    pending.update((card.id, card) for card in reset_cards)
    return _refresh(
        state, reset_cards, now,
        session=None, current_card=None, is_showing_back=False, pending_writes=pending,
    )


def drain_pending(state: SchedulerState) -> tuple[SchedulerState, list[Flashcard]]:
    """Take every pending write out of the state in one piece."""
    return replace(state, pending_writes={}), list(state.pending_writes.values())


def session_summary(session: ReviewSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now()
    reviewed = session.reviewed_cards
    return {
        "total_cards": session.total_cards,
        "reviewed_cards": reviewed,
        "easy_count": session.easy_count,
        "hard_count": session.hard_count,
        "again_count": session.again_count,
        "accuracy": round(session.easy_count / reviewed * 100) if reviewed else 0,
        "duration_seconds": int((now - session.start_time).total_seconds()),
    }
