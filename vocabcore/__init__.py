"""vocabcore - SM-2 spaced repetition scheduling for vocabulary learning."""

from .models import (
    CardState,
    ProgressRecord,
    Rating,
    SchedulerOptions,
    TodayStats,
    VocabularyItem,
)
from .scheduler import apply_rating, classify, graduate, is_due
from .queue import (
    SessionEndReason,
    SessionEndState,
    StudyQueues,
    build_queues,
    get_next_card,
    get_session_end_state,
)
from .today_stats import (
    calculate_daily_stats,
    can_do_review,
    can_introduce_new_card,
)
from .day_key import day_key, make_day_key_fn
from .repository import (
    CatalogReader,
    InMemoryProgressRepository,
    ProgressRepository,
)
from .study_session import StudySession

__all__ = [
    "CardState",
    "ProgressRecord",
    "Rating",
    "SchedulerOptions",
    "TodayStats",
    "VocabularyItem",
    "apply_rating",
    "classify",
    "graduate",
    "is_due",
    "SessionEndReason",
    "SessionEndState",
    "StudyQueues",
    "build_queues",
    "get_next_card",
    "get_session_end_state",
    "calculate_daily_stats",
    "can_do_review",
    "can_introduce_new_card",
    "day_key",
    "make_day_key_fn",
    "CatalogReader",
    "InMemoryProgressRepository",
    "ProgressRepository",
    "StudySession",
]
