# vocabcore/scheduler.py

"""
The card state machine: an SM-2 / Anki-style scheduler.

Every function here is pure. It takes the current progress record, a rating
and the current instant, and returns a new record; persisting it is the
caller's job.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Sequence

from .constants import DAY, LAPSE_INTERVAL_FACTOR, MIN_EASE, MINUTE
from .day_key import DayKeyFn, day_key, ensure_utc
from .exceptions import InvalidConfigurationError, UnknownCardStateError
from .models import (
    CardState,
    ProgressRecord,
    Rating,
    SchedulerOptions,
    VocabularyItem,
)

logger = logging.getLogger(__name__)


def classify(
    record: Optional[ProgressRecord],
    item: Optional[VocabularyItem] = None,
    now: Optional[datetime] = None,
) -> CardState:
    """
    Returns the study state of a card.

    A missing record, or one that has never been rated, is always New no
    matter what its other fields say. `item` and `now` are accepted so every
    classification call site has the same shape; neither changes the result.
    """
    if record is None or record.reps == 0:
        return CardState.New
    return record.state


def is_due(record: Optional[ProgressRecord], now: datetime) -> bool:
    """True once the record's due instant has passed."""
    if record is None or record.due_at is None:
        return False
    return record.due_at <= ensure_utc(now)


def step_minutes(steps: Sequence[float], index: int) -> float:
    """
    Looks up a learning/relearning step duration in minutes.

    An index past the end (steps were shortened while the card was mid-way
    through them) resolves to the last step.

    Raises:
        InvalidConfigurationError: If `steps` is empty.
    """
    if not steps:
        raise InvalidConfigurationError(
            "Scheduler options define no learning/relearning steps."
        )
    return steps[min(index, len(steps) - 1)]


def _hard_step_minutes(steps: Sequence[float], index: int) -> float:
    # Hard on the first step waits halfway between steps 0 and 1.
    if index == 0 and len(steps) > 1:
        return (steps[0] + steps[1]) / 2
    return step_minutes(steps, index)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _lowered_ease(ease: float, penalty: float) -> float:
    # Floored at MIN_EASE, but an ease already below the floor is never raised.
    return min(ease, max(MIN_EASE, ease - penalty))


def graduate(
    record: ProgressRecord,
    interval_days: int,
    ease: float,
    now: datetime,
) -> ProgressRecord:
    """Moves a card into Review with the given interval and ease."""
    card = record.model_copy()
    card.state = CardState.Review
    card.interval_days = interval_days
    card.ease = ease
    card.step_index = 0
    card.due_at = ensure_utc(now) + interval_days * DAY
    return card


def _return_to_review(card: ProgressRecord, now: datetime) -> ProgressRecord:
    # Relearning reuses the interval stored at lapse time.
    card.state = CardState.Review
    card.interval_days = card.interval_days or 1
    card.step_index = 0
    card.due_at = now + card.interval_days * DAY
    return card


def _rate_new(
    card: ProgressRecord,
    rating: Rating,
    now: datetime,
    options: SchedulerOptions,
    day_key_fn: DayKeyFn,
) -> ProgressRecord:
    if card.first_reviewed_at is None:
        card.first_reviewed_at = now
    if card.first_reviewed_day_key is None:
        card.first_reviewed_day_key = day_key_fn(now)

    if rating == Rating.Easy:
        return graduate(card, options.easy_interval, options.starting_ease, now)

    steps = options.learning_steps
    card.state = CardState.Learning
    card.step_index = 0
    if rating == Rating.Hard:
        card.due_at = now + _hard_step_minutes(steps, 0) * MINUTE
    else:
        card.due_at = now + step_minutes(steps, 0) * MINUTE
    return card


def _rate_learning(
    card: ProgressRecord,
    rating: Rating,
    now: datetime,
    options: SchedulerOptions,
    day_key_fn: DayKeyFn,
) -> ProgressRecord:
    steps = options.learning_steps

    if rating == Rating.Easy:
        return graduate(card, options.easy_interval, options.starting_ease, now)
    if rating == Rating.Again:
        card.step_index = 0
        card.due_at = now + step_minutes(steps, 0) * MINUTE
    elif rating == Rating.Hard:
        card.due_at = (
            now + _hard_step_minutes(steps, card.step_index) * MINUTE
        )
    else:
        next_index = card.step_index + 1
        if next_index >= len(steps):
            return graduate(
                card, options.graduating_interval, options.starting_ease, now
            )
        card.step_index = next_index
        card.due_at = now + step_minutes(steps, next_index) * MINUTE
    return card


def _rate_relearning(
    card: ProgressRecord,
    rating: Rating,
    now: datetime,
    options: SchedulerOptions,
    day_key_fn: DayKeyFn,
) -> ProgressRecord:
    steps = options.relearning_steps

    if rating == Rating.Easy:
        return _return_to_review(card, now)
    if rating == Rating.Again:
        card.step_index = 0
        card.due_at = now + step_minutes(steps, 0) * MINUTE
    elif rating == Rating.Hard:
        card.due_at = (
            now + _hard_step_minutes(steps, card.step_index) * MINUTE
        )
    else:
        next_index = card.step_index + 1
        if next_index >= len(steps):
            return _return_to_review(card, now)
        card.step_index = next_index
        card.due_at = now + step_minutes(steps, next_index) * MINUTE
    return card


def _rate_review(
    card: ProgressRecord,
    rating: Rating,
    now: datetime,
    options: SchedulerOptions,
    day_key_fn: DayKeyFn,
) -> ProgressRecord:
    current_interval = card.interval_days or 1

    if rating == Rating.Again:
        card.state = CardState.Relearning
        card.lapses += 1
        card.ease = _lowered_ease(card.ease, options.lapse_ease_penalty)
        card.interval_days = max(
            1, math.floor(current_interval * LAPSE_INTERVAL_FACTOR)
        )
        card.step_index = 0
        card.due_at = (
            now + step_minutes(options.relearning_steps, 0) * MINUTE
        )
        return card

    if rating == Rating.Hard:
        card.ease = _lowered_ease(card.ease, options.hard_ease_penalty)
        new_interval = (
            current_interval
            * options.hard_interval_multiplier
            * options.interval_modifier
        )
    elif rating == Rating.Good:
        new_interval = current_interval * card.ease * options.interval_modifier
    else:
        card.ease = card.ease + options.easy_ease_bonus
        new_interval = (
            current_interval
            * card.ease
            * options.easy_bonus
            * options.interval_modifier
        )

    card.interval_days = max(1, _round_half_up(new_interval))
    card.due_at = now + card.interval_days * DAY
    return card


_RatingHandler = Callable[
    [ProgressRecord, Rating, datetime, SchedulerOptions, DayKeyFn],
    ProgressRecord,
]

_HANDLERS: Dict[CardState, _RatingHandler] = {
    CardState.New: _rate_new,
    CardState.Learning: _rate_learning,
    CardState.Review: _rate_review,
    CardState.Relearning: _rate_relearning,
}


def apply_rating(
    record: ProgressRecord,
    rating: int,
    now: datetime,
    options: Optional[SchedulerOptions] = None,
    day_key_fn: DayKeyFn = day_key,
) -> ProgressRecord:
    """
    Applies a learner's rating to a card and returns the updated record.

    Args:
        record: The latest stored record (use ProgressRecord.new for a card
            that has never been rated). It is not modified.
        rating: 1=Again, 2=Hard, 3=Good, 4=Easy.
        now: The instant of the rating.
        options: Scheduler configuration; defaults to SchedulerOptions().
        day_key_fn: Maps an instant to its study day; stamped on the first
            rating only.

    Returns:
        A new ProgressRecord reflecting the transition.

    Raises:
        ValueError: If the rating is not 1-4.
        UnknownCardStateError: If the record's state is not recognised.
        InvalidConfigurationError: If a needed step sequence is empty.
    """
    parsed_rating = Rating.parse(rating)
    options = options or SchedulerOptions()
    now = ensure_utc(now)

    state = classify(record)
    try:
        handler = _HANDLERS[state]
    except (KeyError, TypeError):
        logger.error(
            f"Record {record.learner_id}/{record.vocabulary_id} has unknown state {state!r}"
        )
        raise UnknownCardStateError(
            f"Cannot schedule card in unknown state '{state}'"
        ) from None

    card = record.model_copy()
    card.last_reviewed_at = now
    card.reps = card.reps + 1

    updated = handler(card, parsed_rating, now, options, day_key_fn)

    logger.debug(
        f"Card {record.vocabulary_id}: {state.name} --{parsed_rating.name}--> "
        f"{updated.state.name} (step={updated.step_index}, "
        f"interval={updated.interval_days}d, ease={updated.ease:.2f}, "
        f"due={updated.due_at})"
    )
    return updated
