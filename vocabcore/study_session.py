"""
This module defines the StudySession class, which drives one learner's study
session: it loads the catalog and progress through the repository
interfaces, asks the queue builder for the next card, applies ratings with
the scheduler, and persists the result.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set
from uuid import uuid4

from .day_key import DayKeyFn, day_key, ensure_utc
from .models import ProgressRecord, SchedulerOptions, TodayStats, VocabularyItem
from .queue import (
    QueuedCard,
    SessionEndState,
    StudyQueues,
    build_queues,
    get_next_card,
    get_session_end_state,
)
from .repository import CatalogReader, ProgressRepository
from .scheduler import apply_rating
from .today_stats import (
    calculate_daily_stats,
    remaining_new_cards,
    remaining_reviews,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StudySession:
    """
    Manages a study session for one learner.

    This class is responsible for:
    - Loading the catalog and the learner's progress snapshot.
    - Providing cards one by one in queue priority order.
    - Applying ratings and persisting the updated progress records.
    - Reporting when and why the session is over.

    Ratings are serialised: each one re-reads the latest stored record
    before computing the transition, under a lock.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        repository: ProgressRepository,
        learner_id: str,
        options: Optional[SchedulerOptions] = None,
        level: Optional[str] = None,
        day_key_fn: DayKeyFn = day_key,
        clock: Clock = _utc_now,
    ):
        """
        Args:
            catalog: Source of vocabulary items.
            repository: Progress storage.
            learner_id: Whose progress is studied.
            options: Scheduler configuration; defaults to SchedulerOptions().
            level: Optional catalog level filter.
            day_key_fn: Study-day boundary function.
            clock: Returns the current instant when a call omits `now`.
        """
        self.catalog = catalog
        self.repository = repository
        self.learner_id = learner_id
        self.options = options or SchedulerOptions()
        self.level = level
        self.day_key_fn = day_key_fn
        self.clock = clock

        self.session_uuid = uuid4()
        self.items: List[VocabularyItem] = []
        self._item_ids: Set[str] = set()
        self.records: List[ProgressRecord] = []
        self.queues = StudyQueues()
        self.today_stats: Optional[TodayStats] = None
        self.recently_rated_ids: Set[str] = set()
        self.cards_rated = 0
        self._lock = threading.Lock()

    def _resolve_now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now if now is not None else self.clock())

    def start(self, now: Optional[datetime] = None) -> None:
        """Load the catalog and build the first queues."""
        logger.info(
            f"Starting study session {self.session_uuid} for learner {self.learner_id}"  # noqa: E501
        )
        self.items = self.catalog.list_items(level=self.level)
        self._item_ids = {item.id for item in self.items}
        self.refresh(now)
        logger.info(
            f"Session ready: {len(self.items)} items, "
            f"{self.queues.total_unseen} unseen, "
            f"{self.queues.total_learning} in learning."
        )

    def refresh(self, now: Optional[datetime] = None) -> None:
        """Reload progress and recompute today's stats and the queues."""
        current = self._resolve_now(now)
        self.records = self.repository.list(self.learner_id)
        self.today_stats = calculate_daily_stats(
            self.records, current, self.day_key_fn
        )
        self.queues = build_queues(
            self.items, self.records, current, self.options
        )

    def _require_started(self) -> TodayStats:
        if self.today_stats is None:
            raise ValueError("Study session has not been started.")
        return self.today_stats

    def next_card(self) -> Optional[QueuedCard]:
        """
        Returns the next card to study, or None when nothing is eligible.

        The card rated last is skipped while anything else is available.
        """
        stats = self._require_started()
        card = get_next_card(
            self.queues, stats, self.options, self.recently_rated_ids
        )
        if card is None and self.recently_rated_ids:
            card = get_next_card(self.queues, stats, self.options)
        return card

    def submit_rating(
        self,
        vocabulary_id: str,
        rating: int,
        now: Optional[datetime] = None,
    ) -> ProgressRecord:
        """
        Rate a card, persist the new progress record and rebuild the queues.

        Returns:
            ProgressRecord: The record as stored by the repository.

        Raises:
            ValueError: If the card is not in this session's catalog or the
                rating is not 1-4.
        """
        self._require_started()
        if vocabulary_id not in self._item_ids:
            raise ValueError(
                f"Vocabulary item {vocabulary_id} is not part of this study session."  # noqa: E501
            )

        with self._lock:
            current = self._resolve_now(now)
            try:
                latest = self.repository.get(self.learner_id, vocabulary_id)
                if latest is None:
                    latest = ProgressRecord.new(self.learner_id, vocabulary_id)
                updated = apply_rating(
                    latest, rating, current, self.options, self.day_key_fn
                )
                stored = self.repository.upsert(updated)
            except Exception as e:
                logger.error(
                    f"Failed to submit rating for {vocabulary_id}: {e}"
                )
                raise

            self.recently_rated_ids = {vocabulary_id}
            self.cards_rated += 1
            self.refresh(current)

        logger.debug(
            f"Rated {vocabulary_id}: now {stored.state.name}, due {stored.due_at}"
        )
        return stored

    def end_state(self) -> SessionEndState:
        """Whether the session is over, and why."""
        stats = self._require_started()
        return get_session_end_state(self.queues, stats, self.options)

    def extend_today(
        self,
        extra_new: int = 0,
        extra_reviews: int = 0,
        now: Optional[datetime] = None,
    ) -> None:
        """Raise today's caps for the rest of this session."""
        self.options = self.options.extend_today(extra_new, extra_reviews)
        logger.info(
            f"Extended today's limits: new={self.options.max_new_cards_per_day}, "
            f"reviews={self.options.max_reviews_per_day}"
        )
        if self.today_stats is not None:
            self.refresh(now)

    def get_session_stats(self) -> Dict[str, int]:
        """
        Returns:
            dict: Counters for the session and today's quota.
        """
        stats = self._require_started()
        return {
            "cards_rated": self.cards_rated,
            "new_introduced_today": stats.new_introduced_today,
            "reviews_done_today": stats.reviews_done_today,
            "remaining_new": remaining_new_cards(stats, self.options),
            "remaining_reviews": remaining_reviews(stats, self.options),
            "learning_due": len(self.queues.intraday_learning)
            + len(self.queues.interday_learning),
            "review_due": len(self.queues.review_due),
            "total_learning": self.queues.total_learning,
            "total_unseen": self.queues.total_unseen,
        }
