"""
Temporal classification for WeddingDesk.

Pure helpers that turn calendar dates and clock times into the day-offset,
overdue, due-today and happening-now classifications used across the
dashboards. Every function here is total: malformed input degrades to
"no classification" (None / False) instead of raising.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser


_CLOCK_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")
_CLOCK_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


@dataclass(frozen=True)
class CurrentAndNext:
    """Result of resolving the happening-now and up-next timeline entries."""
    current: Any = None
    next: Any = None


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a date-like value to a calendar date.

    Args:
        value: date, datetime (time of day is dropped) or ISO string

    Returns:
        The calendar date, or None when absent or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date_parser.isoparse(text).date()
        except (ValueError, OverflowError):
            return None
    return None


def local_today(timezone: Optional[str] = None) -> date:
    """Today's date in the given IANA timezone (system local when None)."""
    return local_now(timezone).date()


def local_now_minutes(timezone: Optional[str] = None) -> int:
    """Minutes since local midnight in the given IANA timezone."""
    now = local_now(timezone)
    return now.hour * 60 + now.minute


def local_now(timezone: Optional[str] = None) -> datetime:
    """Aware current time in the given IANA timezone (naive system local when None)."""
    if timezone:
        try:
            return datetime.now(ZoneInfo(timezone))
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return datetime.now()


def days_until(value: Any, today: Optional[date] = None) -> Optional[int]:
    """
    Signed number of days from today to the given date.

    Time-of-day is ignored on both sides. Positive means future, negative
    past, zero today.

    Args:
        value: Target date (date, datetime or ISO string)
        today: Reference date (defaults to the local date)

    Returns:
        Day difference, or None when the date is absent or unparseable
    """
    target = parse_date(value)
    if target is None:
        return None
    if today is None:
        today = date.today()
    return (target - today).days


def is_overdue(value: Any, completed: bool, today: Optional[date] = None) -> bool:
    """True iff the date is present, strictly before today, and not completed."""
    if completed:
        return False
    delta = days_until(value, today)
    return delta is not None and delta < 0


def due_today_bucket(value: Any, today: Optional[date] = None) -> bool:
    """True iff the date falls on today."""
    return days_until(value, today) == 0


def clock_minutes(value: Any) -> Optional[int]:
    """
    Parse a clock time into minutes since midnight.

    Accepts "HH:MM", "HH:MM:SS" (SQL time columns) and "h:MM AM/PM".

    Returns:
        Minutes in [0, 1439], or None for absent or malformed input
    """
    if not isinstance(value, str):
        return None

    match = _CLOCK_24H.match(value)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        seconds = int(match.group(3) or 0)
        if hours > 23 or minutes > 59 or seconds > 59:
            return None
        return hours * 60 + minutes

    match = _CLOCK_12H.match(value)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if not 1 <= hours <= 12 or minutes > 59:
            return None
        meridiem = match.group(3).upper()
        if meridiem == "PM" and hours != 12:
            hours += 12
        if meridiem == "AM" and hours == 12:
            hours = 0
        return hours * 60 + minutes

    return None


def _item_time(item: Any) -> Any:
    if isinstance(item, dict):
        return item.get("time")
    return getattr(item, "time", None)


def current_and_next_event(
    items: Iterable[Any],
    now_minutes: int,
    time_of: Callable[[Any], Any] = _item_time,
) -> CurrentAndNext:
    """
    Resolve the happening-now and up-next entries of a day-of schedule.

    `current` is the LAST timed item that has started (time <= now) and
    `next` is the FIRST timed item still ahead (time > now). On equal times
    this means current prefers the later entry and next the earlier one.
    Items without a parseable time are never selected.

    Args:
        items: Time-ascending schedule entries
        now_minutes: Minutes since local midnight
        time_of: Accessor returning an item's clock string

    Returns:
        CurrentAndNext with either side possibly None
    """
    current = None
    upcoming = None
    for item in items:
        minutes = clock_minutes(time_of(item))
        if minutes is None:
            continue
        if minutes <= now_minutes:
            current = item
        elif upcoming is None:
            upcoming = item
    return CurrentAndNext(current=current, next=upcoming)
