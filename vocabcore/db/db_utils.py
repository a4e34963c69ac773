"""
Utility functions for data marshalling between Pydantic models and database formats.  # noqa: E501
This module keeps conversion details out of the database facade.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from ..day_key import ensure_utc
from ..exceptions import MarshallingError, UnknownCardStateError
from ..models import CardState, ProgressRecord

PROGRESS_COLUMNS: Tuple[str, ...] = (
    "learner_id",
    "vocabulary_id",
    "state",
    "due_at",
    "interval_days",
    "ease",
    "step_index",
    "last_reviewed_at",
    "reps",
    "lapses",
    "first_reviewed_at",
    "first_reviewed_day_key",
)

_TIMESTAMP_COLUMNS = ("due_at", "last_reviewed_at", "first_reviewed_at")


def _to_db_timestamp(ts: Optional[datetime]) -> Optional[datetime]:
    # Stored as naive UTC.
    if ts is None:
        return None
    return ensure_utc(ts).replace(tzinfo=None)


def record_to_db_params(record: ProgressRecord) -> Tuple:
    """
    Convert a ProgressRecord into a tuple ordered like PROGRESS_COLUMNS.
    """
    return (
        record.learner_id,
        record.vocabulary_id,
        record.state.name,
        _to_db_timestamp(record.due_at),
        record.interval_days,
        record.ease,
        record.step_index,
        _to_db_timestamp(record.last_reviewed_at),
        record.reps,
        record.lapses,
        _to_db_timestamp(record.first_reviewed_at),
        record.first_reviewed_day_key,
    )


def transform_db_row_for_record(row_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Prepare a database row dictionary for constructing a ProgressRecord.

    Raises:
        UnknownCardStateError: If the stored state name is not a CardState.
    """
    data = {column: row_dict.get(column) for column in PROGRESS_COLUMNS}

    state_val = data.pop("state", None)
    try:
        data["state"] = CardState[state_val]
    except KeyError:
        raise UnknownCardStateError(
            f"Progress record {data['learner_id']}/{data['vocabulary_id']} "
            f"has unknown state '{state_val}'"
        ) from None

    for column in _TIMESTAMP_COLUMNS:
        if data[column] is not None:
            data[column] = ensure_utc(data[column])

    return data


def db_row_to_record(row_dict: Dict[str, Any]) -> ProgressRecord:
    """
    Create a ProgressRecord from a database row dictionary.

    Raises:
        UnknownCardStateError: If the stored state is not recognised.
        MarshallingError: If the row fails validation (wraps the original ValidationError).  # noqa: E501
    """
    data = transform_db_row_for_record(row_dict)

    try:
        return ProgressRecord(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse progress record from DB row: {row_dict}. Error: {e}",  # noqa: E501
            original_exception=e,
        ) from e
