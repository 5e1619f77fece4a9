"""
Analytics periods and bucket boundary calculation.

Every bucket is a half-open interval [start, end) computed in one fixed
reference zone. Boundaries are built from local calendar fields and then
localized, so a DST day is 23 or 25 hours long instead of drifting.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum

from tacohut.domain.errors import InvalidPeriod, TimestampOutOfRange

__all__ = ["Period", "PERIODS", "boundary", "ensure_bucketable", "to_zone"]


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value) -> "Period":
        """
        Resolve a granularity token ("daily", Period.WEEKLY, ...) to a Period

        Raises:
            InvalidPeriod: for anything that is not one of the four tokens
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidPeriod(value)


# Fan-out order for one event
PERIODS: tuple[Period, ...] = (Period.DAILY, Period.WEEKLY, Period.MONTHLY, Period.YEARLY)


def to_zone(ts: datetime, tz: tzinfo) -> datetime:
    """Express ts in the reference zone; naive timestamps are taken as already local."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz)


def _midnight(day: date, tz: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def boundary(ts: datetime, period, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """
    Map a timestamp to the [start, end) bucket of a granularity.

    Args:
        ts: The event's effective timestamp (naive means local to tz)
        period: Period or its token
        tz: Reference zone held constant for a deployment

    Returns:
        (start, end) as aware datetimes in tz, start <= ts < end

    Raises:
        InvalidPeriod: unknown granularity
        TimestampOutOfRange: the bucket edge falls outside datetime.min..datetime.max

    Example:
        >>> boundary(datetime(2024, 3, 17, 12), "weekly")  # a Sunday
        (datetime(2024, 3, 11, 0, 0, tzinfo=utc), datetime(2024, 3, 18, 0, 0, tzinfo=utc))
    """
    period = Period.parse(period)
    try:
        local_day = to_zone(ts, tz).date()

        if period is Period.DAILY:
            start_day = local_day
            end_day = local_day + timedelta(days=1)
        elif period is Period.WEEKLY:
            # ISO weekday: Monday=1..Sunday=7
            start_day = local_day - timedelta(days=local_day.isoweekday() - 1)
            end_day = start_day + timedelta(days=7)
        elif period is Period.MONTHLY:
            start_day = local_day.replace(day=1)
            end_day = _first_of_next_month(local_day)
        else:
            start_day = date(local_day.year, 1, 1)
            end_day = date(local_day.year + 1, 1, 1)

        start, end = _midnight(start_day, tz), _midnight(end_day, tz)
        # buckets are stored in UTC, which must be representable too
        start.astimezone(timezone.utc)
        end.astimezone(timezone.utc)
    except (OverflowError, ValueError) as exc:
        raise TimestampOutOfRange(
            f"no {period.value} bucket can hold {ts.isoformat()}: {exc}"
        ) from exc

    return start, end


def ensure_bucketable(ts: datetime, tz: tzinfo = timezone.utc) -> None:
    """
    Check that every period has a representable bucket for ts

    Raises:
        TimestampOutOfRange: e.g. any time in year 9999 (its yearly bucket ends in 10000)
    """
    for period in PERIODS:
        boundary(ts, period, tz)
