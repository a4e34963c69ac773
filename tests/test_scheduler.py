import pytest
import datetime
from datetime import timedelta

from vocabcore.exceptions import InvalidConfigurationError, UnknownCardStateError
from vocabcore.models import CardState, ProgressRecord, Rating, SchedulerOptions
from vocabcore.scheduler import (
    apply_rating,
    classify,
    graduate,
    is_due,
    step_minutes,
)

UTC = datetime.timezone.utc
NOW = datetime.datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


@pytest.fixture
def new_record() -> ProgressRecord:
    return ProgressRecord.new("learner-1", "huis")


def learning_record(step_index: int = 0, **kwargs) -> ProgressRecord:
    return ProgressRecord(
        learner_id="learner-1",
        vocabulary_id="huis",
        state=CardState.Learning,
        step_index=step_index,
        reps=kwargs.pop("reps", 1),
        due_at=kwargs.pop("due_at", NOW),
        **kwargs,
    )


def review_record(interval_days: int = 10, ease: float = 2.5, **kwargs):
    return ProgressRecord(
        learner_id="learner-1",
        vocabulary_id="huis",
        state=CardState.Review,
        interval_days=interval_days,
        ease=ease,
        reps=kwargs.pop("reps", 5),
        due_at=kwargs.pop("due_at", NOW),
        **kwargs,
    )


# --- classify / is_due ---


@pytest.mark.parametrize("state", list(CardState))
def test_unrated_record_is_always_new(state: CardState):
    """A record with reps == 0 is New whatever else it says."""
    record = ProgressRecord(
        learner_id="l",
        vocabulary_id="v",
        state=state,
        reps=0,
        interval_days=7,
        due_at=NOW - timedelta(days=3),
    )
    assert classify(record, now=NOW) == CardState.New


def test_missing_record_is_new():
    assert classify(None) == CardState.New


def test_classify_returns_stored_state_once_rated():
    record = review_record()
    assert classify(record, now=NOW) == CardState.Review
    # Pure: a second call gives the same answer.
    assert classify(record, now=NOW) == classify(record, now=NOW)


def test_is_due():
    record = review_record(due_at=NOW)
    assert is_due(record, NOW) is True
    assert is_due(record, NOW - timedelta(seconds=1)) is False
    assert is_due(None, NOW) is False
    assert is_due(ProgressRecord.new("l", "v"), NOW) is False


# --- New cards ---


def test_new_card_easy_graduates_immediately(new_record):
    """A new card rated Easy goes straight to Review with the easy interval."""
    options = SchedulerOptions(easy_interval=4)
    result = apply_rating(new_record, Rating.Easy, NOW, options)

    assert result.state == CardState.Review
    assert result.interval_days == 4
    assert result.ease == options.starting_ease
    assert result.due_at == NOW + timedelta(days=4)
    assert result.step_index == 0


def test_new_card_again_enters_learning_at_first_step(new_record):
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(new_record, Rating.Again, NOW, options)

    assert result.state == CardState.Learning
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=1)


def test_new_card_hard_uses_average_of_first_two_steps(new_record):
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(new_record, Rating.Hard, NOW, options)

    assert result.state == CardState.Learning
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=5.5)


def test_new_card_hard_with_single_step_uses_that_step(new_record):
    options = SchedulerOptions(learning_steps=(10.0,))
    result = apply_rating(new_record, Rating.Hard, NOW, options)
    assert result.due_at == NOW + timedelta(minutes=10)


def test_new_card_good_starts_learning_progression(new_record):
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(new_record, Rating.Good, NOW, options)

    assert result.state == CardState.Learning
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=1)


def test_first_rating_stamps_first_review_once(new_record):
    first = apply_rating(new_record, Rating.Good, NOW)
    assert first.first_reviewed_at == NOW
    assert first.first_reviewed_day_key == "2024-01-01"
    assert first.reps == 1
    assert first.last_reviewed_at == NOW

    later = NOW + timedelta(days=2)
    second = apply_rating(first, Rating.Good, later)
    assert second.first_reviewed_at == NOW
    assert second.first_reviewed_day_key == "2024-01-01"
    assert second.reps == 2
    assert second.last_reviewed_at == later


def test_first_review_day_key_uses_reference_timezone(new_record):
    """23:30 UTC on Jan 1st is already Jan 2nd in Brussels."""
    late_evening = datetime.datetime(2024, 1, 1, 23, 30, tzinfo=UTC)
    result = apply_rating(new_record, Rating.Good, late_evening)
    assert result.first_reviewed_day_key == "2024-01-02"


def test_day_key_fn_is_injectable(new_record):
    result = apply_rating(
        new_record, Rating.Good, NOW, day_key_fn=lambda ts: "1999-12-31"
    )
    assert result.first_reviewed_day_key == "1999-12-31"


def test_apply_rating_does_not_mutate_input(new_record):
    apply_rating(new_record, Rating.Easy, NOW)
    assert new_record.reps == 0
    assert new_record.state == CardState.New
    assert new_record.first_reviewed_at is None


def test_unrated_record_with_stale_state_is_rated_as_new():
    """reps == 0 wins over a stored Review state."""
    record = ProgressRecord(
        learner_id="l", vocabulary_id="v", state=CardState.Review, reps=0
    )
    result = apply_rating(record, Rating.Again, NOW)
    assert result.state == CardState.Learning
    assert result.lapses == 0


# --- Learning cards ---


def test_learning_hard_at_first_step_uses_average():
    """Hard on step 0 with steps [1, 10] waits 5.5 minutes."""
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(learning_record(0), Rating.Hard, NOW, options)

    assert result.state == CardState.Learning
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=5.5)


def test_learning_hard_later_step_repeats_step():
    options = SchedulerOptions(learning_steps=(1.0, 10.0, 60.0))
    result = apply_rating(learning_record(1), Rating.Hard, NOW, options)
    assert result.step_index == 1
    assert result.due_at == NOW + timedelta(minutes=10)


def test_learning_again_resets_to_first_step():
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(learning_record(1), Rating.Again, NOW, options)
    assert result.state == CardState.Learning
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=1)


def test_learning_good_advances_step():
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(learning_record(0), Rating.Good, NOW, options)
    assert result.state == CardState.Learning
    assert result.step_index == 1
    assert result.due_at == NOW + timedelta(minutes=10)


def test_learning_good_past_last_step_graduates_with_graduating_interval():
    options = SchedulerOptions(
        learning_steps=(1.0, 10.0), graduating_interval=1, easy_interval=4
    )
    result = apply_rating(learning_record(1), Rating.Good, NOW, options)

    assert result.state == CardState.Review
    assert result.interval_days == 1
    assert result.ease == options.starting_ease
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(days=1)


def test_learning_easy_graduates_with_easy_interval():
    options = SchedulerOptions(learning_steps=(1.0, 10.0), easy_interval=4)
    result = apply_rating(learning_record(0), Rating.Easy, NOW, options)
    assert result.state == CardState.Review
    assert result.interval_days == 4
    assert result.due_at == NOW + timedelta(days=4)


def test_single_step_needs_two_good_presses():
    """With one learning step a new card graduates on the second Good."""
    options = SchedulerOptions(learning_steps=(10.0,))
    card = ProgressRecord.new("l", "v")

    card = apply_rating(card, Rating.Good, NOW, options)
    assert card.state == CardState.Learning

    card = apply_rating(card, Rating.Good, NOW + timedelta(minutes=10), options)
    assert card.state == CardState.Review
    assert card.interval_days == options.graduating_interval


def test_step_index_beyond_shortened_steps_uses_last_step():
    options = SchedulerOptions(learning_steps=(1.0, 10.0))
    result = apply_rating(learning_record(5), Rating.Hard, NOW, options)
    assert result.due_at == NOW + timedelta(minutes=10)


# --- Review cards ---


def test_review_good_multiplies_interval_by_ease():
    """interval 10, ease 2.5, modifier 1.0 -> 25 days, ease unchanged."""
    options = SchedulerOptions(interval_modifier=1.0)
    result = apply_rating(review_record(10, 2.5), Rating.Good, NOW, options)

    assert result.state == CardState.Review
    assert result.interval_days == 25
    assert result.ease == 2.5
    assert result.due_at == NOW + timedelta(days=25)


def test_review_hard_lowers_ease_and_uses_hard_multiplier():
    options = SchedulerOptions()
    result = apply_rating(review_record(10, 2.5), Rating.Hard, NOW, options)

    assert result.ease == pytest.approx(2.35)
    assert result.interval_days == 12  # round(10 * 1.2)
    assert result.due_at == NOW + timedelta(days=12)


def test_review_easy_raises_ease_and_applies_bonus():
    options = SchedulerOptions()
    result = apply_rating(review_record(10, 2.5), Rating.Easy, NOW, options)

    assert result.ease == pytest.approx(2.65)
    # round(10 * 2.65 * 1.3) = round(34.45) = 34
    assert result.interval_days == 34


def test_review_interval_rounds_half_up():
    # 3 * 2.5 = 7.5 -> 8
    result = apply_rating(review_record(3, 2.5), Rating.Good, NOW)
    assert result.interval_days == 8


def test_review_interval_is_at_least_one_day():
    options = SchedulerOptions(interval_modifier=0.1)
    result = apply_rating(review_record(1, 1.3), Rating.Hard, NOW, options)
    assert result.interval_days == 1


def test_review_with_zero_interval_treats_it_as_one_day():
    result = apply_rating(review_record(0, 2.5), Rating.Good, NOW)
    assert result.interval_days == 3  # round(1 * 2.5) half-up


def test_review_again_is_a_lapse():
    options = SchedulerOptions(relearning_steps=(10.0,))
    before = review_record(10, 2.5, lapses=2)
    result = apply_rating(before, Rating.Again, NOW, options)

    assert result.state == CardState.Relearning
    assert result.lapses == 3
    assert result.ease == pytest.approx(2.3)
    assert result.interval_days == 5  # max(1, floor(10 * 0.5))
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=10)


@pytest.mark.parametrize(
    "interval, expected", [(1, 1), (2, 1), (3, 1), (7, 3), (25, 12)]
)
def test_lapse_halves_interval_with_floor(interval, expected):
    result = apply_rating(review_record(interval), Rating.Again, NOW)
    assert result.interval_days == expected


@pytest.mark.parametrize("ease", [1.0, 1.3, 1.4, 2.5, 3.1])
def test_lapse_never_increases_ease(ease):
    result = apply_rating(review_record(10, ease), Rating.Again, NOW)
    assert result.ease <= ease
    assert result.state == CardState.Relearning


def test_lapse_ease_is_floored():
    result = apply_rating(review_record(10, 1.4), Rating.Again, NOW)
    assert result.ease == pytest.approx(1.3)


# --- Relearning cards ---


def relearning_record(step_index=0, interval_days=5):
    return ProgressRecord(
        learner_id="learner-1",
        vocabulary_id="huis",
        state=CardState.Relearning,
        step_index=step_index,
        interval_days=interval_days,
        ease=2.3,
        reps=6,
        lapses=1,
        due_at=NOW,
    )


def test_relearning_good_past_last_step_returns_to_review_with_stored_interval():
    options = SchedulerOptions(relearning_steps=(10.0,))
    result = apply_rating(relearning_record(0, 5), Rating.Good, NOW, options)

    assert result.state == CardState.Review
    assert result.interval_days == 5
    assert result.ease == pytest.approx(2.3)
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(days=5)


def test_relearning_easy_returns_to_review():
    options = SchedulerOptions(relearning_steps=(10.0, 30.0))
    result = apply_rating(relearning_record(0, 5), Rating.Easy, NOW, options)
    assert result.state == CardState.Review
    assert result.interval_days == 5
    assert result.due_at == NOW + timedelta(days=5)


def test_relearning_good_advances_through_steps():
    options = SchedulerOptions(relearning_steps=(10.0, 30.0))
    result = apply_rating(relearning_record(0), Rating.Good, NOW, options)
    assert result.state == CardState.Relearning
    assert result.step_index == 1
    assert result.due_at == NOW + timedelta(minutes=30)


def test_relearning_again_resets_step():
    options = SchedulerOptions(relearning_steps=(10.0, 30.0))
    result = apply_rating(relearning_record(1), Rating.Again, NOW, options)
    assert result.state == CardState.Relearning
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(minutes=10)
    # Again while relearning is not a new lapse.
    assert result.lapses == 1


def test_relearning_hard_first_step_averages():
    options = SchedulerOptions(relearning_steps=(10.0, 30.0))
    result = apply_rating(relearning_record(0), Rating.Hard, NOW, options)
    assert result.due_at == NOW + timedelta(minutes=20)


# --- Again always resets the step ---


@pytest.mark.parametrize(
    "record",
    [
        ProgressRecord.new("l", "v"),
        learning_record(1),
        review_record(),
        relearning_record(1),
    ],
)
def test_again_always_leaves_step_index_at_zero(record):
    options = SchedulerOptions(
        learning_steps=(1.0, 10.0), relearning_steps=(10.0, 30.0)
    )
    result = apply_rating(record, Rating.Again, NOW, options)
    assert result.state in (CardState.Learning, CardState.Relearning)
    assert result.step_index == 0


# --- Graduation helper ---


def test_graduate_sets_review_state():
    result = graduate(learning_record(1), 3, 2.5, NOW)
    assert result.state == CardState.Review
    assert result.interval_days == 3
    assert result.ease == 2.5
    assert result.step_index == 0
    assert result.due_at == NOW + timedelta(days=3)


# --- Faults ---


@pytest.mark.parametrize("bad_rating", [0, 5, -1])
def test_invalid_rating_input(new_record, bad_rating):
    with pytest.raises(ValueError, match=r"Invalid rating: .* Must be 1-4"):
        apply_rating(new_record, bad_rating, NOW)


def test_plain_int_ratings_are_accepted(new_record):
    result = apply_rating(new_record, 4, NOW)
    assert result.state == CardState.Review


def test_naive_now_is_treated_as_utc(new_record):
    naive = datetime.datetime(2024, 1, 1, 10, 0, 0)
    result = apply_rating(new_record, Rating.Easy, naive)
    assert result.due_at == NOW + timedelta(days=4)


def test_unknown_state_is_fatal():
    record = ProgressRecord.model_construct(
        learner_id="l",
        vocabulary_id="v",
        state="Suspended",
        reps=3,
        due_at=NOW,
        interval_days=1,
        ease=2.5,
        step_index=0,
        lapses=0,
        last_reviewed_at=None,
        first_reviewed_at=None,
        first_reviewed_day_key=None,
    )
    with pytest.raises(UnknownCardStateError):
        apply_rating(record, Rating.Good, NOW)


def test_empty_learning_steps_is_a_configuration_error(new_record):
    options = SchedulerOptions.model_construct(
        **{**SchedulerOptions().model_dump(), "learning_steps": ()}
    )
    with pytest.raises(InvalidConfigurationError):
        apply_rating(new_record, Rating.Good, NOW, options)


def test_step_minutes_rejects_empty_sequence():
    with pytest.raises(InvalidConfigurationError):
        step_minutes((), 0)
    assert step_minutes((1.0, 10.0), 1) == 10.0
