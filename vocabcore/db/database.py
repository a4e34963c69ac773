"""
DuckDB-backed progress repository for vocabcore.
"""

import duckdb
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ..exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    MarshallingError,
    ProgressOperationError,
)
from ..models import CardState, ProgressRecord
from ..repository import ProgressRepository
from . import db_utils
from .schema_manager import SchemaManager

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class ProgressDatabase(ProgressRepository):
    """
    Stores learners' progress records in one DuckDB database. Owns the
    connection, delegates table creation to SchemaManager and row conversion
    to db_utils. Intended for use as a context manager.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the database file. Use ':memory:' for an
                in-memory database.
            read_only: If True, open the database in read-only mode.
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_DB:
            self.db_path_resolved = Path(MEMORY_DB)
        else:
            self.db_path_resolved = Path(db_path).resolve()
        self.read_only = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._created = False
        self._schema_manager = SchemaManager(self)
        logger.info(
            f"ProgressDatabase initialized for DB at: {self.db_path_resolved}"
        )

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_DB

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Returns the open connection, connecting on first use.

        Raises:
            DatabaseConnectionError: If DuckDB cannot open the database.
        """
        if self._connection is not None:
            return self._connection

        # An in-memory database, or a file that does not exist yet, starts
        # without the progress table.
        self._created = self.is_memory or not self.db_path_resolved.exists()
        if not self.is_memory:
            self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = duckdb.connect(
                database=str(self.db_path_resolved), read_only=self.read_only
            )
        except duckdb.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to {self.db_path_resolved}: {e}",
                original_exception=e,
            ) from e
        logger.info(f"Connected to progress database {self.db_path_resolved}")
        return self._connection

    def close_connection(self) -> None:
        """Closes the connection, if open. A later call reconnects."""
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.info(f"Closed progress database {self.db_path_resolved}")
        except duckdb.Error as e:
            logger.error(f"Error closing the progress database: {e}")
        finally:
            self._connection = None

    def __enter__(self) -> "ProgressDatabase":
        """
        Open the connection and create the schema if a new writable database
        was just created.
        """
        self.get_connection()
        if self._created and not self.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()

    def initialize_schema(self) -> None:
        """Creates the progress table if it does not exist yet."""
        self._schema_manager.initialize_schema()

    # --- Progress Operations ---
    # fmt: off
    # noqa: E501
    _UPSERT_PROGRESS_SQL = """
        INSERT INTO progress (learner_id, vocabulary_id, state, due_at, interval_days, ease,
                              step_index, last_reviewed_at, reps, lapses,
                              first_reviewed_at, first_reviewed_day_key)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
        ON CONFLICT (learner_id, vocabulary_id) DO UPDATE SET
            state = EXCLUDED.state,
            due_at = EXCLUDED.due_at,
            interval_days = EXCLUDED.interval_days,
            ease = EXCLUDED.ease,
            step_index = EXCLUDED.step_index,
            last_reviewed_at = EXCLUDED.last_reviewed_at,
            reps = EXCLUDED.reps,
            lapses = EXCLUDED.lapses,
            -- The first-review stamp is write-once: keep whatever is stored.
            first_reviewed_at = COALESCE(first_reviewed_at, EXCLUDED.first_reviewed_at),
            first_reviewed_day_key = COALESCE(first_reviewed_day_key, EXCLUDED.first_reviewed_day_key);
        """
    # fmt: on

    def _select_sql(self, where: str) -> str:
        columns = ", ".join(db_utils.PROGRESS_COLUMNS)
        return f"SELECT {columns} FROM progress WHERE {where}"

    def _rows_to_records(
        self, rows: List[Dict[str, Any]]
    ) -> List[ProgressRecord]:
        try:
            return [db_utils.db_row_to_record(row) for row in rows]
        except MarshallingError as e:
            raise ProgressOperationError(
                "Failed to parse progress records from database.",
                original_exception=e,
            ) from e

    def list(self, learner_id: str) -> List[ProgressRecord]:
        """
        Fetches every progress record of a learner.

        Raises:
            ProgressOperationError: On database or marshalling failure.
            UnknownCardStateError: If a stored record has an unknown state.
        """
        conn = self.get_connection()
        sql = self._select_sql("learner_id = $1 ORDER BY vocabulary_id")
        try:
            cursor = conn.execute(sql, (learner_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error listing progress for learner {learner_id}: {e}")
            raise ProgressOperationError(
                f"Failed to list progress: {e}", original_exception=e
            ) from e
        logger.debug(f"Fetched {len(rows)} progress records for {learner_id}")
        return self._rows_to_records(rows)

    def get(
        self, learner_id: str, vocabulary_id: str
    ) -> Optional[ProgressRecord]:
        """
        Fetches one progress record, or None if the card was never rated.

        Raises:
            ProgressOperationError: On database or marshalling failure.
        """
        conn = self.get_connection()
        sql = self._select_sql("learner_id = $1 AND vocabulary_id = $2")
        try:
            cursor = conn.execute(sql, (learner_id, vocabulary_id))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(
                f"Error fetching progress {learner_id}/{vocabulary_id}: {e}"
            )
            raise ProgressOperationError(
                f"Failed to fetch progress: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        return self._rows_to_records(rows)[0]

    def upsert(self, record: ProgressRecord) -> ProgressRecord:
        """
        Inserts or replaces a record and returns the stored version (with any
        previously stored first-review stamp preserved).

        Raises:
            ProgressOperationError: If the write fails.
        """
        self.upsert_batch([record])
        stored = self.get(record.learner_id, record.vocabulary_id)
        if stored is None:
            raise ProgressOperationError(
                f"Progress {record.learner_id}/{record.vocabulary_id} missing after upsert."  # noqa: E501
            )
        return stored

    def upsert_batch(self, records: Sequence[ProgressRecord]) -> int:
        """
        Upserts records in a single transaction.

        Returns:
            int: Number of records processed; 0 for an empty sequence.

        Raises:
            ProgressOperationError: If the database operation fails.
        """
        if not records:
            return 0

        params = [db_utils.record_to_db_params(record) for record in records]
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                cursor.executemany(self._UPSERT_PROGRESS_SQL, params)
                cursor.commit()
        except duckdb.Error as e:
            raise self._handle_write_error(conn, e) from e
        logger.debug(f"Upserted {len(params)} progress records.")
        return len(params)

    def _handle_write_error(
        self, conn, e: duckdb.Error
    ) -> ProgressOperationError:
        """
        Roll back after a failed write and build the error to raise. A failed
        rollback is logged but does not replace the original error.
        """
        logger.error(f"Error during progress upsert: {e}")
        try:
            conn.rollback()
            logger.info("Transaction rolled back due to error in progress upsert.")
        except duckdb.Error as rb_err:
            logger.error(
                f"Failed to rollback transaction during upsert error: {rb_err}"
            )
        return ProgressOperationError(
            f"Progress upsert failed: {e}", original_exception=e
        )

    def get_state_counts(self, learner_id: str) -> Dict[str, int]:
        """
        Counts a learner's stored records per state name.

        Raises:
            DatabaseError: If the query fails.
        """
        conn = self.get_connection()
        sql = (
            "SELECT state, COUNT(*) AS n FROM progress "
            "WHERE learner_id = $1 GROUP BY state"
        )
        try:
            rows = conn.execute(sql, (learner_id,)).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to count progress states: {e}", original_exception=e
            ) from e
        counts = {state.name: 0 for state in CardState}
        counts.update({state: count for state, count in rows})
        return counts
