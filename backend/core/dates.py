"""
Calendar day handling

All capacity accounting works on calendar days (datetime.date), never on
instants. Days are stored as "YYYY-MM-DD" strings so equality and range
queries in MongoDB compare days, not timestamps.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Tuple, Union

from .exceptions import InvalidDateException, ValidationException

DAY_FORMAT = "%Y-%m-%d"

DayInput = Union[str, date, datetime]


def normalize_day(value: DayInput) -> date:
    """
    Canonicalize a date input to a calendar day.

    Accepts "YYYY-MM-DD", ISO-8601 with time (with or without "Z"/offset),
    or a native date/datetime. The day is taken as written: time of day
    and UTC offset never shift it.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateException(value)

    raw = value.strip()
    if not raw:
        raise InvalidDateException()

    try:
        if len(raw) == 10:
            return datetime.strptime(raw, DAY_FORMAT).date()
        if raw[-1] in ("Z", "z"):
            raw = raw[:-1] + "+00:00"
        return datetime.fromisoformat(raw).date()
    except ValueError:
        raise InvalidDateException(value)


def day_key(value: DayInput) -> str:
    """Storage/grouping key for a day: YYYY-MM-DD"""
    return normalize_day(value).strftime(DAY_FORMAT)


def iter_days(start: date, end: date) -> Iterator[date]:
    """All days in [start, end] inclusive"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def parse_day_range(start: DayInput, end: DayInput, max_days: int) -> Tuple[date, date]:
    """Normalize a [start, end] range and enforce its bounds"""
    start_day = normalize_day(start)
    end_day = normalize_day(end)

    if end_day < start_day:
        raise ValidationException("end date must not be before start date")

    span = (end_day - start_day).days + 1
    if span > max_days:
        raise ValidationException(f"Date range too large ({span} days, max. {max_days})")

    return start_day, end_day


def week_bounds(day: date, week_start_weekday: int) -> Tuple[date, date]:
    """Bakery week containing day, starting on week_start_weekday (0 = Monday)"""
    offset = (day.weekday() - week_start_weekday) % 7
    start = day - timedelta(days=offset)
    return start, start + timedelta(days=6)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()
