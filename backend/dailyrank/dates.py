"""Calendar helpers pinned to a fixed UTC+8 offset.

The leaderboard day never follows the host timezone: every conversion goes
through ``DAY_OFFSET`` applied to a UTC reading of the clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

DAY_OFFSET = timedelta(hours=8)
DAY_FORMAT = '%Y-%m-%d'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return utc_now()
    if now.tzinfo is None:
        # Naive values are stored/compared as UTC throughout the service
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _shifted(now: Optional[datetime]) -> datetime:
    return _as_utc(now) + DAY_OFFSET


def today(now: Optional[datetime] = None) -> str:
    """Day string (``YYYY-MM-DD``) for ``now`` shifted by the fixed offset."""
    return _shifted(now).strftime(DAY_FORMAT)


def hour_of_day(now: Optional[datetime] = None) -> int:
    return _shifted(now).hour


def seconds_until_next_midnight(now: Optional[datetime] = None) -> float:
    """Seconds from ``now`` to the next 00:00 under the fixed offset."""
    shifted = _shifted(now)
    midnight = shifted.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    return (midnight - shifted).total_seconds()


def naive_utc(now: Optional[datetime] = None) -> datetime:
    """UTC timestamp without tzinfo, the form ``DailyRank.created_at`` holds."""
    return _as_utc(now).replace(tzinfo=None)


def is_valid_day(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = datetime.strptime(value, DAY_FORMAT)
    except ValueError:
        return False
    # strptime accepts unpadded fields such as 2024-1-5
    return parsed.strftime(DAY_FORMAT) == value


def describe(now: Optional[datetime] = None) -> dict:
    """Server clock snapshot for clients aligning with the day boundary."""
    current = _as_utc(now)
    shifted = current + DAY_OFFSET
    return {
        'iso': current.isoformat(),
        'date': shifted.strftime(DAY_FORMAT),
        'hour': shifted.hour,
        'timestamp': int(current.timestamp() * 1000),
        'year': shifted.year,
        'month': shifted.month,
        'day': shifted.day,
        # 0 = Sunday, matching the game client's calendar widgets
        'day_of_week': (shifted.weekday() + 1) % 7,
    }
