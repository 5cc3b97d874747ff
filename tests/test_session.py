# tests/test_session.py
from datetime import timedelta

import pytest

from kid_flashcards.errors import InvalidTransition
from kid_flashcards.models import NEVER_REVIEWED
from kid_flashcards.session import (
    SchedulerState, complete_session, drain_pending, know_card, load_cards, rate_card,
    reset_progress, reset_session, reveal_back, review_again, session_summary,
    start_review,
)
from kid_flashcards.sm2 import Rating


@pytest.fixture
def loaded(make_card, now):
    def _loaded(*card_ids):
        return load_cards(SchedulerState(), [make_card(card_id) for card_id in card_ids], now)
    return _loaded


def _card(state, card_id):
    return next(c for c in state.cards if c.id == card_id)


def test_load_cards_computes_due_and_stats(loaded):
    state = loaded("a", "b", "c")
    assert len(state.cards) == 3
    assert len(state.due_cards) == 3
    assert state.stats["total_cards"] == 3
    assert state.stats["due_cards"] == 3
    assert state.session is None


def test_start_review_initializes_session(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    session = state.session
    assert session.current_index == 0
    assert session.total_cards == 2
    assert session.reviewed_cards == 0
    assert session.easy_count == session.hard_count == session.again_count == 0
    assert session.is_complete is False
    assert session.start_time == now
    assert state.current_card.id == "a"
    assert state.is_showing_back is False


def test_start_review_with_empty_pool_is_noop(now):
    state = SchedulerState()
    assert start_review(state, now=now) is state
    assert start_review(state, cards=[], now=now) is state


def test_start_review_respects_limit(loaded, now):
    state = start_review(loaded(*[f"c{i}" for i in range(8)]), now=now, limit=5)
    assert state.session.total_cards == 5


def test_start_review_while_active_rejected(loaded, now):
    state = start_review(loaded("a"), now=now)
    with pytest.raises(InvalidTransition):
        start_review(state, now=now)


def test_reveal_back(loaded, now):
    state = start_review(loaded("a"), now=now)
    revealed = reveal_back(state)
    assert revealed.is_showing_back is True
    assert revealed.session.is_showing_back is True
    assert revealed.current_card == state.current_card
    assert state.is_showing_back is False


def test_reveal_back_without_session(loaded):
    with pytest.raises(InvalidTransition):
        reveal_back(loaded("a"))


def test_end_to_end_scenario(loaded, now):
    state = start_review(loaded("A", "B"), now=now)

    state = rate_card(reveal_back(state), "A", Rating.GOOD, now)
    assert state.session.reviewed_cards == 1
    assert state.session.easy_count == 1
    assert state.current_card.id == "B"
    assert state.is_showing_back is False

    state = rate_card(reveal_back(state), "B", Rating.AGAIN, now)
    assert state.session.reviewed_cards == 1
    assert state.session.again_count == 1
    assert len(state.session.cards) == 3
    assert state.session.current_index == 2
    assert state.current_card.id == "B"

    state = rate_card(reveal_back(state), "B", Rating.GOOD, now)
    assert state.session.reviewed_cards == 2
    assert state.session.easy_count == 2
    assert state.session.current_index == 3
    assert state.session.is_complete is True
    assert state.current_card is None


def test_completion_after_n_ratings(loaded, now):
    state = start_review(loaded("a", "b", "c", "d"), now=now)
    for rating in (Rating.GOOD, Rating.HARD, Rating.EASY, Rating.GOOD):
        assert not state.session.is_complete
        state = rate_card(state, state.current_card.id, rating, now)
    assert state.session.is_complete
    assert state.session.reviewed_cards == 4
    assert state.session.hard_count == 1
    assert state.session.easy_count == 3


def test_requeue_growth_and_unique_count(loaded, now):
    state = start_review(loaded("a", "b", "c"), now=now)
    failed_once = set()
    rate_calls = 0
    again_issued = 0
    while not state.session.is_complete:
        card_id = state.current_card.id
        if card_id in failed_once:
            rating = Rating.GOOD
        else:
            failed_once.add(card_id)
            rating = Rating.AGAIN
            again_issued += 1
        state = rate_card(state, card_id, rating, now)
        rate_calls += 1
        assert state.session.reviewed_cards <= 3
    assert rate_calls > 3
    assert rate_calls == 6
    assert state.session.again_count == again_issued == 3
    assert state.session.reviewed_cards == 3


def test_repeated_failures_never_overcount(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    for _ in range(5):
        state = rate_card(state, state.current_card.id, Rating.AGAIN, now)
        assert state.session.reviewed_cards == 0
    assert state.session.again_count == 5
    assert len(state.session.cards) == 7
    while not state.session.is_complete:
        state = rate_card(state, state.current_card.id, Rating.HARD, now)
    assert state.session.reviewed_cards == 2


def test_rate_updates_collection_stats_and_pending(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    card = _card(state, "a")
    assert card.total_reviews == 1
    assert card.next_review_date == now + timedelta(days=1)
    assert state.stats["due_cards"] == 1
    assert [c.id for c in state.due_cards] == ["b"]
    assert list(state.pending_writes) == ["a"]
    assert state.pending_writes["a"] == card


def test_pending_writes_keep_latest_version(loaded, now):
    state = start_review(loaded("a"), now=now)
    state = rate_card(state, "a", Rating.AGAIN, now)
    state = rate_card(state, "a", Rating.GOOD, now)
    assert len(state.pending_writes) == 1
    assert state.pending_writes["a"].total_reviews == 2


def test_rate_unknown_card_rejected_without_change(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    with pytest.raises(InvalidTransition):
        rate_card(state, "zzz", Rating.GOOD, now)
    assert state.session.current_index == 0
    assert _card(state, "a").total_reviews == 0


def test_rate_stale_card_rejected(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    with pytest.raises(InvalidTransition):
        rate_card(state, "b", Rating.GOOD, now)


def test_rate_without_session_rejected(loaded, now):
    with pytest.raises(InvalidTransition):
        rate_card(loaded("a"), "a", Rating.GOOD, now)


def test_rate_after_completion_rejected(loaded, now):
    state = start_review(loaded("a"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    with pytest.raises(InvalidTransition):
        rate_card(state, "a", Rating.GOOD, now)


def test_rate_rejects_unknown_quality(loaded, now):
    state = start_review(loaded("a"), now=now)
    with pytest.raises(ValueError):
        rate_card(state, "a", 1, now)


def test_know_card_from_front(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    assert state.is_showing_back is False
    state = know_card(state, "a", now)
    assert state.session.easy_count == 1
    assert state.session.reviewed_cards == 1
    assert _card(state, "a").average_quality == 5.0
    assert state.current_card.id == "b"


def test_reset_session_keeps_ratings(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    state = reset_session(state)
    assert state.session is None
    assert state.current_card is None
    assert _card(state, "a").total_reviews == 1


def test_complete_session_refreshes_stats(loaded, now):
    state = start_review(loaded("a"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    later = now + timedelta(days=2)
    state = complete_session(state, later)
    assert state.stats["due_cards"] == 1


def test_review_again_starts_new_session(loaded, now):
    state = start_review(loaded("a", "b", "c"), now=now, limit=2)
    state = rate_card(state, "a", Rating.GOOD, now)
    state = rate_card(state, "b", Rating.GOOD, now)
    assert state.session.is_complete
    state = review_again(state, now)
    assert state.session.total_cards == 1
    assert state.current_card.id == "c"


def test_review_again_with_nothing_due(loaded, now):
    state = start_review(loaded("a"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    state = review_again(state, now)
    assert state.session is None


def test_review_again_requires_completed_session(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    with pytest.raises(InvalidTransition):
        review_again(state, now)


def test_reset_progress(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    state = rate_card(state, "a", Rating.HARD, now)
    state = reset_progress(state, now)
    card = _card(state, "a")
    assert card.easiness_factor == 2.5
    assert card.repetitions == 0
    assert card.interval == 1
    assert card.total_reviews == 0
    assert card.correct_streak == 0
    assert card.average_quality == 0.0
    assert card.is_new is True
    assert card.last_review_date == NEVER_REVIEWED
    assert state.session is None
    assert state.stats["reviews_today"] == 0
    assert state.stats["due_cards"] == 2
    assert set(state.pending_writes) == {"a", "b"}


def test_drain_pending(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    state = rate_card(state, "b", Rating.HARD, now)
    drained, batch = drain_pending(state)
    assert [c.id for c in batch] == ["a", "b"]
    assert drained.pending_writes == {}
    assert len(state.pending_writes) == 2


def test_session_summary(loaded, now):
    state = start_review(loaded("a", "b"), now=now)
    state = rate_card(state, "a", Rating.GOOD, now)
    state = rate_card(state, "b", Rating.HARD, now)
    summary = session_summary(state.session, now + timedelta(minutes=2, seconds=5))
    assert summary == {
        "total_cards": 2,
        "reviewed_cards": 2,
        "easy_count": 1,
        "hard_count": 1,
        "again_count": 0,
        "accuracy": 50,
        "duration_seconds": 125,
    }


def test_start_review_drops_repeated_cards(make_card, now):
    card = make_card("a")
    state = load_cards(SchedulerState(), [card, make_card("b")], now)
    state = start_review(state, cards=[card, card, state.cards[1]], now=now)
    assert state.session.total_cards == 2
    assert [c.id for c in state.session.cards] == ["a", "b"]
    state = rate_card(state, "a", Rating.GOOD, now)
    state = rate_card(state, "b", Rating.GOOD, now)
    assert state.session.is_complete
    assert state.session.reviewed_cards == state.session.total_cards
