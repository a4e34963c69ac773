"""
Collaborator interfaces for the scheduler core.

The core never performs I/O. A study session reads the catalog through a
CatalogReader and loads/stores progress through a ProgressRepository.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from .models import ProgressRecord, VocabularyItem

logger = logging.getLogger(__name__)


class CatalogReader(ABC):
    """Read-only access to the vocabulary catalog."""

    @abstractmethod
    def list_items(self, level: Optional[str] = None) -> List[VocabularyItem]:
        """
        Returns the catalog ordered by item index.

        Args:
            level: If given, only items of this level are returned.
        """
        pass


class ProgressRepository(ABC):
    """
    Storage for per-learner progress records.

    Records are never deleted and are always read and written whole.
    """

    @abstractmethod
    def list(self, learner_id: str) -> List[ProgressRecord]:
        """Returns every stored record for the learner."""
        pass

    @abstractmethod
    def get(
        self, learner_id: str, vocabulary_id: str
    ) -> Optional[ProgressRecord]:
        """Returns the stored record, or None if the card was never rated."""
        pass

    @abstractmethod
    def upsert(self, record: ProgressRecord) -> ProgressRecord:
        """Inserts or replaces a record and returns the stored version."""
        pass


class InMemoryProgressRepository(ProgressRepository):
    """Dict-backed repository, handy for tests and throwaway sessions."""

    def __init__(self, records: Optional[List[ProgressRecord]] = None):
        self._records: Dict[Tuple[str, str], ProgressRecord] = {}
        for record in records or []:
            self.upsert(record)

    def list(self, learner_id: str) -> List[ProgressRecord]:
        return [
            record.model_copy()
            for (owner, _), record in self._records.items()
            if owner == learner_id
        ]

    def get(
        self, learner_id: str, vocabulary_id: str
    ) -> Optional[ProgressRecord]:
        record = self._records.get((learner_id, vocabulary_id))
        return record.model_copy() if record is not None else None

    def upsert(self, record: ProgressRecord) -> ProgressRecord:
        key = (record.learner_id, record.vocabulary_id)
        stored = record.model_copy()
        existing = self._records.get(key)
        # The first-review stamp is write-once.
        if existing is not None and existing.first_reviewed_day_key is not None:
            stored.first_reviewed_at = existing.first_reviewed_at
            stored.first_reviewed_day_key = existing.first_reviewed_day_key
        self._records[key] = stored
        logger.debug(f"Stored progress for {key[0]}/{key[1]}")
        return stored.model_copy()
