"""
Datetime utilities.

Provides timezone-aware datetime functions and the rolling windows used
by the rewards engine.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def window_start(days: int, now: datetime | None = None) -> datetime:
    """Start of a rolling window of ``days`` ending at ``now``."""
    return (now or utc_now()) - timedelta(days=days)


def month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """
    First instant of the month containing ``moment`` and of the next one.

    Example:
        >>> month_bounds(datetime(2026, 12, 15, tzinfo=UTC))[1]
        datetime.datetime(2027, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end
