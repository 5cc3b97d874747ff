"""SM-2 spaced repetition algorithm with a four-level rating scale."""
import math
from dataclasses import replace
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Optional

from kid_flashcards.models import NEVER_REVIEWED, Flashcard

MIN_EASINESS = 1.3
MAX_EASINESS = 2.5


class Rating(IntEnum):
    """Quality ratings offered to the learner, as SM-2 quality scores."""

    AGAIN = 0
    HARD = 3
    GOOD = 4
    EASY = 5


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def default_schedule(now: Optional[datetime] = None) -> dict:
    """Scheduling fields for a card that has never been rated.

    The first review is due at the start of the current day so a freshly
    loaded card is immediately part of the due pool.
    """
    now = now or datetime.now()
    return {
        "easiness_factor": MAX_EASINESS,
        "repetitions": 0,
        "interval": 1,
        "next_review_date": start_of_day(now),
        "last_review_date": NEVER_REVIEWED,
        "total_reviews": 0,
        "correct_streak": 0,
        "average_quality": 0.0,
        "is_new": True,
    }


def sm2_update(
    quality: int,
    *,
    easiness_factor: float,
    repetitions: int,
    interval: int,
    total_reviews: int,
    correct_streak: int,
    average_quality: float,
    now: datetime,
) -> dict:
    """Calculate next review parameters using SM-2.

    Args:
        quality: One of the Rating scores (0, 3, 4 or 5)
        easiness_factor: Current easiness factor, within [1.3, 2.5]
        repetitions: Consecutive successful recalls since the last lapse
        interval: Current interval in days
        total_reviews: Ratings applied so far
        correct_streak: Consecutive non-failing ratings
        average_quality: Mean of all quality scores so far
        now: Moment of the rating

    Returns:
        Dict with the updated scheduling fields and ``should_repeat_today``.
    """
    new_ef = easiness_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    new_ef = min(MAX_EASINESS, max(MIN_EASINESS, round(new_ef, 2)))

    if quality < 3:
        # Lapse: start over and show the card again in this pass
        new_repetitions = 0
        new_interval = 1
        new_streak = 0
        should_repeat_today = True
    else:
        new_repetitions = repetitions + 1
        if new_repetitions == 1:
            new_interval = 1
        elif new_repetitions == 2:
            new_interval = 6
        else:
            # Half-up rounding
            new_interval = max(1, math.floor(interval * new_ef + 0.5))
        new_streak = correct_streak + 1
        should_repeat_today = False

    new_total = total_reviews + 1
    new_average = (average_quality * total_reviews + quality) / new_total

    return {
        "easiness_factor": new_ef,
        "repetitions": new_repetitions,
        "interval": new_interval,
        "correct_streak": new_streak,
        "total_reviews": new_total,
        "average_quality": new_average,
        "last_review_date": now,
        "next_review_date": now + timedelta(days=new_interval),
        "is_new": False,
        "should_repeat_today": should_repeat_today,
    }


def apply_rating(card: Flashcard, quality: int, now: Optional[datetime] = None) -> Flashcard:
    """Return a copy of ``card`` with one rating applied."""
    now = now or datetime.now()
    updated = sm2_update(
        int(Rating(quality)),
        easiness_factor=card.easiness_factor,
        repetitions=card.repetitions,
        interval=card.interval,
        total_reviews=card.total_reviews,
        correct_streak=card.correct_streak,
        average_quality=card.average_quality,
        now=now,
    )
    updated.pop("should_repeat_today")
    return replace(card, updated_at=now, **updated)


def should_repeat_today(quality: int) -> bool:
    return Rating(quality) == Rating.AGAIN
