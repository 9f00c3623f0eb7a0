"""
Calendar and range resolution for energy queries.

Turns a ``YYYY-MM-DD`` date (or explicit instants) plus a time frame into a
concrete half-open ``[start, end)`` range of UTC instants. Two frames are
supported: the UTC calendar day and a fixed-offset local day (UTC+7 by
default). There is no per-request timezone negotiation beyond that offset.

CHANGELOG:
- 2026-10-16: Add month and calendar windows
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time, timedelta, timezone
from enum import Enum

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATE_FORMAT_HINT = "YYYY-MM-DD"
DATE_EXAMPLE = "2025-09-30"

DEFAULT_LOCAL_OFFSET_HOURS = 7

_ONE_DAY = timedelta(days=1)


class InvalidDateError(ValueError):
    """Raised when a date parameter does not match ``YYYY-MM-DD``."""

    def __init__(self, value: str | None) -> None:
        self.value = value
        self.example = DATE_EXAMPLE
        super().__init__(
            f"Invalid date format {value!r}. Use {DATE_FORMAT_HINT}, "
            f"e.g. {DATE_EXAMPLE}"
        )


class InvalidRangeError(ValueError):
    """Raised when explicit range bounds are missing, inverted or out of range."""


class TimeFrame(str, Enum):
    """Wall-clock reference used for day boundaries and hour buckets."""

    UTC = "utc"
    LOCAL = "local"


def frame_tz(
    frame: TimeFrame,
    offset_hours: int = DEFAULT_LOCAL_OFFSET_HOURS,
) -> timezone:
    """Return the tzinfo for *frame*."""
    if frame is TimeFrame.LOCAL:
        return timezone(timedelta(hours=offset_hours))
    return UTC


def ensure_utc(moment: datetime) -> datetime:
    """Normalize *moment* to UTC, treating naive datetimes as already UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def parse_date(value: str | None) -> date:
    """Parse a literal ``YYYY-MM-DD`` string.

    Raises:
        InvalidDateError: If *value* is missing, has another shape, or is not
            a real calendar date (e.g. ``2025-02-30``).
    """
    if value is None or not DATE_PATTERN.match(value):
        raise InvalidDateError(value)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDateError(value) from None


def today_in(
    frame: TimeFrame = TimeFrame.UTC,
    now: datetime | None = None,
    offset_hours: int = DEFAULT_LOCAL_OFFSET_HOURS,
) -> date:
    """Return the current calendar date in *frame*."""
    if now is None:
        now = datetime.now(tz=UTC)
    return ensure_utc(now).astimezone(frame_tz(frame, offset_hours)).date()


def day_window(
    day: date,
    frame: TimeFrame = TimeFrame.UTC,
    offset_hours: int = DEFAULT_LOCAL_OFFSET_HOURS,
) -> tuple[datetime, datetime]:
    """Return the UTC instants bounding *day* in *frame*.

    A local day starts at local midnight, i.e. ``offset_hours`` before UTC
    midnight of the same date.
    """
    start = datetime.combine(day, time.min, tzinfo=frame_tz(frame, offset_hours))
    start = start.astimezone(UTC)
    return start, start + _ONE_DAY


def hour_slice_window(
    day: date,
    start_hour: int | None = None,
    end_hour: int | None = None,
) -> tuple[datetime, datetime]:
    """Return a sub-day slice of the UTC day.

    ``end_hour`` is inclusive: ``start_hour=8, end_hour=17`` covers
    08:00:00 up to (not including) 18:00:00.

    Raises:
        InvalidRangeError: If an hour is outside 0-23 or start > end.
    """
    first = 0 if start_hour is None else start_hour
    last = 23 if end_hour is None else end_hour
    for name, hour in (("start_hour", first), ("end_hour", last)):
        if not 0 <= hour <= 23:
            raise InvalidRangeError(f"{name} must be between 0 and 23, got {hour}")
    if first > last:
        raise InvalidRangeError(
            f"start_hour ({first}) must not be after end_hour ({last})"
        )
    day_start, _ = day_window(day, TimeFrame.UTC)
    return (
        day_start + timedelta(hours=first),
        day_start + timedelta(hours=last + 1),
    )


def custom_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Validate explicit range bounds and normalize them to UTC.

    Raises:
        InvalidRangeError: If ``end`` is not after ``start``.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end <= start:
        raise InvalidRangeError(
            f"end ({end.isoformat()}) must be after start ({start.isoformat()})"
        )
    return start, end


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    """Return the UTC instants bounding a calendar month."""
    start = datetime(year, month, 1, tzinfo=UTC)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=UTC)
    else:
        end = datetime(year, month + 1, 1, tzinfo=UTC)
    return start, end


def calendar_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the range covering the previous and the current UTC month."""
    if now is None:
        now = datetime.now(tz=UTC)
    now = ensure_utc(now)
    if now.month == 1:
        start, _ = month_window(now.year - 1, 12)
    else:
        start, _ = month_window(now.year, now.month - 1)
    _, end = month_window(now.year, now.month)
    return start, end


def previous_utc_day(now: datetime | None = None, days_back: int = 1) -> date:
    """Return the UTC date *days_back* days before *now*."""
    return today_in(TimeFrame.UTC, now) - timedelta(days=days_back)
