"""
Pydantic models for the vocabulary catalog, per-learner progress and the
scheduler configuration.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import IntEnum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import constants
from .day_key import ensure_utc

DAY_KEY_REGEX_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class CardState(IntEnum):
    """
    Represents the scheduling state of a learner's card.
    """

    New = 0
    Learning = 1
    Review = 2
    Relearning = 3


class Rating(IntEnum):
    """
    Represents the user's rating of their recall performance.
    """

    Again = 1
    Hard = 2
    Good = 3
    Easy = 4

    @classmethod
    def parse(cls, value: int) -> "Rating":
        """Maps a raw 1-4 rating to a Rating and validates it."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(
                f"Invalid rating: {value}. Must be 1-4 "
                "(1=Again, 2=Hard, 3=Good, 4=Easy)."
            ) from None


class VocabularyItem(BaseModel):
    """
    Immutable catalog entry. Owned by the catalog; the scheduler only reads it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(
        ...,
        min_length=1,
        description="Stable vocabulary identifier.",
    )
    index: int = Field(
        ...,
        ge=0,
        description="Catalog ordering index. New cards are introduced in this order.",
    )
    term: str = Field(
        ...,
        min_length=1,
        description="The word or phrase being learned (card front).",
    )
    translation: str = Field(
        ...,
        description="Translation shown on the card back.",
    )
    example: Optional[str] = Field(
        default=None,
        description="Optional example sentence.",
    )
    level: Optional[str] = Field(
        default=None,
        description="Course level used to filter the catalog (e.g. 'A1').",
    )
    localized: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra localized display fields keyed by locale.",
    )


class ProgressRecord(BaseModel):
    """
    A learner's scheduling state for one vocabulary item.

    Created lazily on the first rating; absent records are implicitly New.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    learner_id: str = Field(..., min_length=1)
    vocabulary_id: str = Field(..., min_length=1)
    state: CardState = Field(
        default=CardState.New,
        description="Current scheduling state.",
    )
    due_at: Optional[datetime] = Field(
        default=None,
        description="UTC instant the card becomes eligible again (unused while New).",
    )
    interval_days: int = Field(
        default=0,
        ge=0,
        description="Last computed review interval in days (0 until graduated).",
    )
    ease: float = Field(
        default=constants.DEFAULT_STARTING_EASE,
        gt=0,
        description="Multiplicative interval growth factor.",
    )
    step_index: int = Field(
        default=0,
        ge=0,
        description="Position in the learning/relearning step sequence.",
    )
    last_reviewed_at: Optional[datetime] = Field(default=None)
    reps: int = Field(default=0, ge=0, description="Total ratings applied.")
    lapses: int = Field(
        default=0, ge=0, description="Again ratings received while in Review."
    )
    first_reviewed_at: Optional[datetime] = Field(
        default=None,
        description="Instant of the first rating. Write-once.",
    )
    first_reviewed_day_key: Optional[str] = Field(
        default=None,
        description="Study day (YYYY-MM-DD) of the first rating. Write-once.",
    )

    @field_validator(
        "due_at", "last_reviewed_at", "first_reviewed_at", mode="after"
    )
    @classmethod
    def normalize_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("first_reviewed_day_key")
    @classmethod
    def validate_day_key(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not re.match(DAY_KEY_REGEX_PATTERN, v):
            raise ValueError(f"Day key '{v}' is not in YYYY-MM-DD format.")
        return v

    @classmethod
    def new(cls, learner_id: str, vocabulary_id: str) -> "ProgressRecord":
        """The implicit record of a card the learner has never rated."""
        return cls(learner_id=learner_id, vocabulary_id=vocabulary_id)


class SchedulerOptions(BaseModel):
    """Per-session configuration of the SM-2 scheduler."""

    model_config = ConfigDict(extra="forbid")

    max_new_cards_per_day: int = Field(
        default=constants.DEFAULT_MAX_NEW_CARDS_PER_DAY, ge=0
    )
    max_reviews_per_day: int = Field(
        default=constants.DEFAULT_MAX_REVIEWS_PER_DAY, ge=0
    )
    learning_steps: Tuple[float, ...] = Field(
        default=constants.DEFAULT_LEARNING_STEPS,
        description="Learning step durations in minutes.",
    )
    relearning_steps: Tuple[float, ...] = Field(
        default=constants.DEFAULT_RELEARNING_STEPS,
        description="Relearning step durations in minutes.",
    )
    graduating_interval: int = Field(
        default=constants.DEFAULT_GRADUATING_INTERVAL, ge=1
    )
    easy_interval: int = Field(default=constants.DEFAULT_EASY_INTERVAL, ge=1)
    starting_ease: float = Field(
        default=constants.DEFAULT_STARTING_EASE, ge=constants.MIN_EASE
    )
    hard_interval_multiplier: float = Field(
        default=constants.DEFAULT_HARD_INTERVAL_MULTIPLIER, gt=0
    )
    easy_bonus: float = Field(default=constants.DEFAULT_EASY_BONUS, gt=0)
    interval_modifier: float = Field(
        default=constants.DEFAULT_INTERVAL_MODIFIER, gt=0
    )
    lapse_ease_penalty: float = Field(
        default=constants.DEFAULT_LAPSE_EASE_PENALTY, ge=0
    )
    hard_ease_penalty: float = Field(
        default=constants.DEFAULT_HARD_EASE_PENALTY, ge=0
    )
    easy_ease_bonus: float = Field(
        default=constants.DEFAULT_EASY_EASE_BONUS, ge=0
    )
    new_ignores_review_limit: bool = Field(
        default=False,
        description="Keep introducing new cards after the review cap is hit.",
    )
    learn_ahead_minutes: float = Field(
        default=0,
        ge=0,
        description="Same-day learning cards due within this many minutes count as due now.",
    )
    interday_from_last_review: bool = Field(
        default=False,
        description=(
            "Classify learning cards as interday by the length of their "
            "scheduled step rather than by how far away their due time is."
        ),
    )

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def validate_steps(cls, steps: Tuple[float, ...]) -> Tuple[float, ...]:
        """Ensure a step sequence is non-empty and every step is positive."""
        if not steps:
            raise ValueError("Step sequence must contain at least one step.")
        for step in steps:
            if step <= 0:
                raise ValueError(f"Step duration must be positive, got {step}.")
        return steps

    def extend_today(
        self, extra_new: int = 0, extra_reviews: int = 0
    ) -> "SchedulerOptions":
        """Return a copy with today's caps raised by the given amounts."""
        if extra_new < 0 or extra_reviews < 0:
            raise ValueError("Limit extensions must be non-negative.")
        return self.model_copy(
            update={
                "max_new_cards_per_day": self.max_new_cards_per_day + extra_new,
                "max_reviews_per_day": self.max_reviews_per_day + extra_reviews,
            }
        )


class TodayStats(BaseModel):
    """Counters for the current study day."""

    model_config = ConfigDict(extra="forbid")

    date_key: str = Field(..., pattern=DAY_KEY_REGEX_PATTERN)
    new_introduced_today: int = Field(default=0, ge=0)
    reviews_done_today: int = Field(default=0, ge=0)
