"""
Anki-style queue builder.

Partitions a learner's catalog into prioritized queues for "right now",
picks the next card to show, and decides when a study session is over.

Priority rules:
1. Intraday learning cards due now (earliest first)
2. Interday learning cards due now (earliest first)
3. Review cards due now, while under the daily review cap
4. New cards in catalog order, while under the daily new-card cap
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from .constants import DAY, MINUTE
from .day_key import ensure_utc
from .models import (
    CardState,
    ProgressRecord,
    SchedulerOptions,
    TodayStats,
    VocabularyItem,
)
from .scheduler import classify
from .today_stats import can_do_review, can_introduce_new_card

logger = logging.getLogger(__name__)

LEARNING_STATES = (CardState.Learning, CardState.Relearning)


@dataclass
class QueuedCard:
    """A catalog item paired with the learner's record (None while unseen)."""

    item: VocabularyItem
    record: Optional[ProgressRecord]
    state: CardState
    due_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return self.item.id


@dataclass
class NextLearningCard:
    vocabulary_id: str
    due_at: datetime
    minutes_until_due: int


@dataclass
class StudyQueues:
    intraday_learning: List[QueuedCard] = field(default_factory=list)
    interday_learning: List[QueuedCard] = field(default_factory=list)
    review_due: List[QueuedCard] = field(default_factory=list)
    new_cards: List[QueuedCard] = field(default_factory=list)
    total_learning: int = 0
    total_unseen: int = 0
    next_learning_card: Optional[NextLearningCard] = None


class SessionEndReason:
    LEARNING_AVAILABLE = "learning_available"
    CARDS_AVAILABLE = "cards_available"
    LEARNING_PENDING = "learning_pending"
    NEW_LIMIT_REACHED = "new_limit_reached"
    REVIEW_LIMIT_REACHED = "review_limit_reached"
    BOTH_LIMITS_REACHED = "both_limits_reached"
    ALL_DONE = "all_done"


@dataclass
class SessionEndState:
    is_done: bool
    reason: str
    has_learning_pending: bool


def _is_intraday(
    record: ProgressRecord,
    due_at: datetime,
    now: datetime,
    options: SchedulerOptions,
) -> bool:
    if options.interday_from_last_review:
        # Measured by the length of the scheduled step instead.
        return due_at - (record.last_reviewed_at or now) < DAY
    return due_at - now < DAY


def build_queues(
    catalog: Iterable[VocabularyItem],
    progress_records: Iterable[ProgressRecord],
    now: datetime,
    options: Optional[SchedulerOptions] = None,
) -> StudyQueues:
    """
    Build study queues with Anki-like priority.

    Args:
        catalog: Every vocabulary item available to the learner.
        progress_records: The learner's stored records; records for items
            outside the catalog are ignored.
        now: The current instant.
        options: Scheduler configuration; only `learn_ahead_minutes` and
            `interday_from_last_review` are used.

    Returns:
        StudyQueues with due-now queues sorted earliest first and new cards
        in catalog order.
    """
    options = options or SchedulerOptions()
    now = ensure_utc(now)
    learn_ahead_until = now + options.learn_ahead_minutes * MINUTE

    progress_map = {record.vocabulary_id: record for record in progress_records}
    queues = StudyQueues()
    earliest_learning: Optional[QueuedCard] = None

    for item in catalog:
        record = progress_map.get(item.id)
        state = classify(record, item, now)

        if state == CardState.New:
            queues.total_unseen += 1
            queues.new_cards.append(QueuedCard(item, record, state))
            continue

        # A missing due instant on a rated card is treated as due now.
        due_at = record.due_at or now
        queued = QueuedCard(item, record, state, due_at)

        if state in LEARNING_STATES:
            queues.total_learning += 1
            if _is_intraday(record, due_at, now, options):
                if due_at <= learn_ahead_until:
                    queues.intraday_learning.append(queued)
                    continue
            elif due_at <= now:
                queues.interday_learning.append(queued)
                continue
            if earliest_learning is None or due_at < earliest_learning.due_at:
                earliest_learning = queued
        elif state == CardState.Review:
            if due_at <= now:
                queues.review_due.append(queued)

    def by_due(card: QueuedCard):
        return (card.due_at, card.item.index)

    queues.intraday_learning.sort(key=by_due)
    queues.interday_learning.sort(key=by_due)
    queues.review_due.sort(key=by_due)
    queues.new_cards.sort(key=lambda card: card.item.index)

    if earliest_learning is not None:
        queues.next_learning_card = NextLearningCard(
            vocabulary_id=earliest_learning.id,
            due_at=earliest_learning.due_at,
            minutes_until_due=math.ceil(
                (earliest_learning.due_at - now) / MINUTE
            ),
        )

    logger.debug(
        f"Queues: intraday={len(queues.intraday_learning)} "
        f"interday={len(queues.interday_learning)} "
        f"review={len(queues.review_due)} new={len(queues.new_cards)} "
        f"learning total={queues.total_learning}"
    )
    return queues


def _first_not_excluded(
    queue: List[QueuedCard], excluded: set
) -> Optional[QueuedCard]:
    return next((card for card in queue if card.id not in excluded), None)


def get_next_card(
    queues: StudyQueues,
    today_stats: TodayStats,
    options: Optional[SchedulerOptions] = None,
    excluded_ids: Iterable[str] = (),
) -> Optional[QueuedCard]:
    """
    Pick the next card to study under the priority and quota rules.

    Args:
        queues: Output of build_queues.
        today_stats: Today's counters.
        options: Scheduler configuration holding the daily caps.
        excluded_ids: Ids to skip, typically cards rated a moment ago.

    Returns:
        The next QueuedCard, or None when nothing is eligible.
    """
    options = options or SchedulerOptions()
    excluded = set(excluded_ids)

    for learning_queue in (queues.intraday_learning, queues.interday_learning):
        card = _first_not_excluded(learning_queue, excluded)
        if card is not None:
            return card

    if can_do_review(today_stats, options.max_reviews_per_day):
        card = _first_not_excluded(queues.review_due, excluded)
        if card is not None:
            return card

    if can_introduce_new_card(
        today_stats,
        options.max_new_cards_per_day,
        options.max_reviews_per_day,
        options.new_ignores_review_limit,
    ):
        card = _first_not_excluded(queues.new_cards, excluded)
        if card is not None:
            return card

    return None


def get_session_end_state(
    queues: StudyQueues,
    today_stats: TodayStats,
    options: Optional[SchedulerOptions] = None,
) -> SessionEndState:
    """
    Decide whether the study session is over, and why.

    Due learning cards always keep the session going, whatever the caps say.
    Session length is never bounded by a card count, only by what is
    available under the daily caps.
    """
    options = options or SchedulerOptions()

    # learning_available and cards_available only ever accompany is_done=False.
    if queues.intraday_learning or queues.interday_learning:
        return SessionEndState(
            is_done=False,
            reason=SessionEndReason.LEARNING_AVAILABLE,
            has_learning_pending=True,
        )

    has_review_due = bool(queues.review_due)
    has_new_available = bool(queues.new_cards)
    review_allowed = can_do_review(today_stats, options.max_reviews_per_day)
    new_allowed = can_introduce_new_card(
        today_stats,
        options.max_new_cards_per_day,
        options.max_reviews_per_day,
        options.new_ignores_review_limit,
    )

    if (has_review_due and review_allowed) or (has_new_available and new_allowed):
        return SessionEndState(
            is_done=False,
            reason=SessionEndReason.CARDS_AVAILABLE,
            has_learning_pending=queues.total_learning > 0,
        )

    # Learning cards exist but none is due yet.
    if queues.total_learning > 0:
        return SessionEndState(
            is_done=True,
            reason=SessionEndReason.LEARNING_PENDING,
            has_learning_pending=True,
        )

    new_blocked = has_new_available and not new_allowed
    review_blocked = has_review_due and not review_allowed
    new_cap_hit = (
        today_stats.new_introduced_today >= options.max_new_cards_per_day
    )

    if new_blocked and review_blocked:
        reason = SessionEndReason.BOTH_LIMITS_REACHED
    elif new_blocked:
        # New cards can also be held back by the review cap alone.
        reason = (
            SessionEndReason.NEW_LIMIT_REACHED
            if new_cap_hit
            else SessionEndReason.REVIEW_LIMIT_REACHED
        )
    elif review_blocked:
        reason = SessionEndReason.REVIEW_LIMIT_REACHED
    else:
        reason = SessionEndReason.ALL_DONE

    return SessionEndState(
        is_done=True, reason=reason, has_learning_pending=False
    )
