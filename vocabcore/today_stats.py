"""
Daily statistics for the Anki-style limits.

Counts are derived from the learner's full set of progress records, scoped
to the current study day in the reference timezone.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from .day_key import DayKeyFn, day_key
from .models import CardState, ProgressRecord, SchedulerOptions, TodayStats

logger = logging.getLogger(__name__)


def calculate_daily_stats(
    records: Iterable[ProgressRecord],
    now: datetime,
    day_key_fn: DayKeyFn = day_key,
) -> TodayStats:
    """
    Calculate today's counters from a learner's progress records.

    A card counts as introduced today when its write-once
    `first_reviewed_day_key` is today. `reps` and `last_reviewed_at` change on
    every rating and are never used for this.

    A review counts as done today when the card is in Review, has more than
    one rating (the first rating created the record), and was last rated
    today.
    """
    today = day_key_fn(now)
    new_introduced = 0
    reviews_done = 0

    for record in records:
        if record.first_reviewed_day_key == today:
            new_introduced += 1
        if (
            record.state == CardState.Review
            and record.reps > 1
            and record.last_reviewed_at is not None
            and day_key_fn(record.last_reviewed_at) == today
        ):
            reviews_done += 1

    logger.debug(
        f"Daily stats for {today}: new introduced={new_introduced}, "
        f"reviews done={reviews_done}"
    )
    return TodayStats(
        date_key=today,
        new_introduced_today=new_introduced,
        reviews_done_today=reviews_done,
    )


def can_introduce_new_card(
    stats: TodayStats,
    max_new_cards_per_day: int,
    max_reviews_per_day: int,
    new_ignores_review_limit: bool = False,
    reviews_done: Optional[int] = None,
) -> bool:
    """
    Check whether another new card may be introduced today.

    Args:
        stats: Today's counters.
        max_new_cards_per_day: Daily new-card cap.
        max_reviews_per_day: Daily review cap.
        new_ignores_review_limit: When True, the review cap does not block
            new cards.
        reviews_done: Current review count if it is fresher than `stats`.
    """
    actual_reviews_done = (
        reviews_done if reviews_done is not None else stats.reviews_done_today
    )

    if stats.new_introduced_today >= max_new_cards_per_day:
        return False

    if not new_ignores_review_limit and actual_reviews_done >= max_reviews_per_day:
        return False

    return True


def can_do_review(stats: TodayStats, max_reviews_per_day: int) -> bool:
    """Check whether more reviews can be done today."""
    return stats.reviews_done_today < max_reviews_per_day


def remaining_new_cards(stats: TodayStats, options: SchedulerOptions) -> int:
    return max(0, options.max_new_cards_per_day - stats.new_introduced_today)


def remaining_reviews(stats: TodayStats, options: SchedulerOptions) -> int:
    return max(0, options.max_reviews_per_day - stats.reviews_done_today)
