# services/time_window.py - map a leaderboard time filter to a lower bound on dateTaken
import enum
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from services.leaderboard_models import AttemptRecord


class TimeFilter(enum.Enum):
    ALL_TIME = "all_time"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Plain day arithmetic; "monthly" and "yearly" are not calendar aware
WINDOW_DAYS = {
    TimeFilter.WEEKLY: 7,
    TimeFilter.MONTHLY: 30,
    TimeFilter.YEARLY: 365,
}


def parse_time_filter(value: Optional[str]) -> TimeFilter:
    """Accept "weekly", "WEEKLY", "all-time" ...; empty means all time."""
    if not value:
        return TimeFilter.ALL_TIME
    normalized = value.strip().lower().replace("-", "_")
    try:
        return TimeFilter(normalized)
    except ValueError:
        raise ValueError(f"Unknown time filter: {value!r}")


def resolve_cutoff(time_filter: TimeFilter, now: Optional[datetime] = None) -> Optional[datetime]:
    """Return the earliest dateTaken included by the filter, or None for no bound."""
    days = WINDOW_DAYS.get(time_filter)
    if days is None:
        return None
    if now is None:
        now = datetime.now(timezone.utc)
    return now - timedelta(days=days)


def as_utc(value: datetime) -> datetime:
    # Naive timestamps (e.g. read back from SQLite) are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def within_window(attempt: AttemptRecord, cutoff: Optional[datetime]) -> bool:
    if cutoff is None:
        return True
    if attempt.date_taken is None:
        return False
    return as_utc(attempt.date_taken) >= as_utc(cutoff)


def filter_attempts(attempts: Iterable[AttemptRecord], cutoff: Optional[datetime]) -> List[AttemptRecord]:
    return [a for a in attempts if within_window(a, cutoff)]
