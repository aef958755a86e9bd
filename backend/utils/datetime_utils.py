"""Calendar-day arithmetic on canonical ``YYYY-MM-DD`` strings.

Every helper here is a pure function of its arguments. Days are handled as
``datetime.date`` values, which carry no time of day and no timezone, so
neighbouring days and week windows never drift across DST transitions.

Reading the clock ("what day is it for this user?") is kept separate in
``today_for_tz`` / ``today_string``; the arithmetic helpers only compare against
a ``today`` they are given.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DAY_FORMAT_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

DayLike = str | date


class MalformedDate(ValueError):
    """Raised when a value is not a valid ``YYYY-MM-DD`` calendar day."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_day(value: DayLike) -> date:
    """Parse a canonical calendar day. ``date`` values pass through unchanged."""
    if isinstance(value, datetime):
        raise MalformedDate(f"Expected a calendar day, got a datetime: {value!r}")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DAY_FORMAT_RE.fullmatch(value):
        raise MalformedDate(f"Invalid calendar day: {value!r}")
    try:
        return date(int(value[0:4]), int(value[5:7]), int(value[8:10]))
    except ValueError as exc:
        raise MalformedDate(f"Invalid calendar day: {value!r}") from exc


def format_day(instant: date | datetime, tz_name: str | None = None) -> str:
    """Zero-padded ``YYYY-MM-DD`` of an instant in local wall-clock time.

    An aware datetime is shifted into ``tz_name`` first when one is given;
    naive datetimes and plain dates are formatted as they are.
    """
    if isinstance(instant, datetime):
        if tz_name and instant.tzinfo is not None:
            instant = instant.astimezone(_zone(tz_name))
        instant = instant.date()
    if not isinstance(instant, date):
        raise MalformedDate(f"Cannot format {instant!r} as a calendar day")
    return f"{instant.year:04d}-{instant.month:02d}-{instant.day:02d}"


def previous_day(day: DayLike) -> str:
    return format_day(parse_day(day) - timedelta(days=1))


def next_day(day: DayLike) -> str:
    return format_day(parse_day(day) + timedelta(days=1))


def start_of_week(d: date) -> date:
    """Return Monday of the week containing d."""
    # date.weekday() is 0 for Monday and 6 for Sunday, so Sunday closes the week.
    return d - timedelta(days=d.weekday())


def week_start(day: DayLike) -> str:
    return format_day(start_of_week(parse_day(day)))


def week_window(day: DayLike) -> list[str]:
    """Monday..Sunday of the week containing ``day``."""
    monday = start_of_week(parse_day(day))
    return [format_day(monday + timedelta(days=offset)) for offset in range(7)]


def last_n_days(n: int, day: DayLike) -> list[str]:
    """The ``n`` days strictly before ``day``, oldest first."""
    if n < 0:
        raise ValueError("n must be non-negative")
    end = parse_day(day)
    return [format_day(end - timedelta(days=offset)) for offset in range(n, 0, -1)]


def days_between(start: DayLike, end: DayLike) -> int:
    return (parse_day(end) - parse_day(start)).days


def is_today(day: DayLike, today: DayLike) -> bool:
    return parse_day(day) == parse_day(today)


def is_future(day: DayLike, today: DayLike) -> bool:
    return parse_day(day) > parse_day(today)


def weekday_name(day: DayLike) -> str:
    return WEEKDAY_NAMES[parse_day(day).weekday()]


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz_name}") from exc


def is_valid_timezone(tz_name: str) -> bool:
    try:
        _zone(tz_name)
    except ValueError:
        return False
    return True


def today_for_tz(tz_name: str | None) -> date:
    """Return today's date in the user's timezone."""
    if tz_name:
        try:
            return datetime.now(_zone(tz_name)).date()
        except ValueError:
            pass
    return utcnow().date()


def today_string(tz_name: str | None = None) -> str:
    return format_day(today_for_tz(tz_name))
