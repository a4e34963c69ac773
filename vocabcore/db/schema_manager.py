import duckdb
import logging
from typing import TYPE_CHECKING

from . import schema
from ..exceptions import SchemaInitializationError

if TYPE_CHECKING:
    from .database import ProgressDatabase

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates the progress table. Existing progress is never dropped."""

    def __init__(self, database: "ProgressDatabase"):
        self._db = database

    def initialize_schema(self) -> None:
        """
        Creates the schema if missing, inside one transaction. A read-only
        file database is left untouched.

        Raises:
            SchemaInitializationError: If DuckDB rejects the schema.
        """
        if self._db.read_only and not self._db.is_memory:
            logger.warning(
                "Attempting to initialize schema in read-only mode. Skipping."
            )
            return

        conn = self._db.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                cursor.execute(schema.DB_SCHEMA_SQL)
                cursor.commit()
            logger.info(
                f"Progress schema at {self._db.db_path_resolved} initialized (or already exists)."  # noqa: E501
            )
        except duckdb.Error as e:
            logger.error(
                f"Error initializing progress schema at {self._db.db_path_resolved}: {e}"  # noqa: E501
            )
            try:
                conn.rollback()
            except duckdb.Error as rb_err:
                logger.error(f"Failed to rollback transaction: {rb_err}")
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e
