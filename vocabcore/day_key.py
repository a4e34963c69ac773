"""
Study-day boundaries.

Every learner shares one "study day", anchored to a single reference
timezone rather than the learner's local zone. Everything that asks "did
this happen today?" goes through a day-key function so the boundary can be
swapped out and tested on its own.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Union
from zoneinfo import ZoneInfo

from .constants import REFERENCE_TIMEZONE

DayKeyFn = Callable[[datetime], str]


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


@lru_cache(maxsize=None)
def _zone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def day_key(
    instant: datetime, tz: Union[str, ZoneInfo] = REFERENCE_TIMEZONE
) -> str:
    """
    Return the calendar day (YYYY-MM-DD) that `instant` falls on in `tz`.

    Naive instants are interpreted as UTC.
    """
    zone = _zone(tz) if isinstance(tz, str) else tz
    return ensure_utc(instant).astimezone(zone).date().isoformat()


def make_day_key_fn(tz_name: str = REFERENCE_TIMEZONE) -> DayKeyFn:
    """
    Build a day-key function bound to one timezone.

    Raises:
        ValueError: If `tz_name` is not a known IANA timezone.
    """
    try:
        zone = _zone(tz_name)
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unknown timezone: '{tz_name}'") from e

    def _day_key(instant: datetime) -> str:
        return day_key(instant, zone)

    return _day_key
