"""Calendar day normalization tests."""
import time
from datetime import date, datetime, timedelta, timezone

import pytest

from core.dates import day_key, iter_days, normalize_day, parse_day_range, week_bounds
from core.exceptions import InvalidDateException, ValidationException


@pytest.mark.parametrize(
    "value",
    [
        "2025-12-24",
        " 2025-12-24 ",
        "2025-12-24T00:00:00",
        "2025-12-24T12:00:00",
        "2025-12-24T23:59:59Z",
        "2025-12-24T23:59:59.999Z",
        "2025-12-24T00:00:00-08:00",
        "2025-12-24T23:30:00+05:30",
        date(2025, 12, 24),
        datetime(2025, 12, 24, 23, 59, tzinfo=timezone.utc),
    ],
)
def test_normalize_day_keeps_calendar_day(value):
    assert normalize_day(value) == date(2025, 12, 24)


@pytest.mark.parametrize(
    "value",
    ["", "   ", "not-a-date", "2025-02-30", "2025-13-01", "24.12.2025", "2025-12-24T25:00:00", None, 20251224],
)
def test_normalize_day_rejects_invalid_input(value):
    with pytest.raises(InvalidDateException) as exc_info:
        normalize_day(value)
    assert exc_info.value.status_code == 400
    assert exc_info.value.error_code == "INVALID_DATE"


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="requires time.tzset")
def test_end_of_day_utc_matches_bare_day_in_negative_offset_timezone(monkeypatch):
    monkeypatch.setenv("TZ", "America/Los_Angeles")
    time.tzset()
    try:
        for day in iter_days(date(2025, 1, 1), date(2025, 12, 31)):
            bare = day.isoformat()
            assert normalize_day(bare) == normalize_day(bare + "T23:59:59Z") == day
    finally:
        monkeypatch.delenv("TZ", raising=False)
        time.tzset()


def test_day_key_is_iso_day():
    assert day_key("2025-07-04T18:00:00Z") == "2025-07-04"
    assert day_key(date(2025, 1, 5)) == "2025-01-05"


def test_iter_days_is_inclusive():
    days = list(iter_days(date(2025, 12, 30), date(2026, 1, 2)))
    assert [d.isoformat() for d in days] == ["2025-12-30", "2025-12-31", "2026-01-01", "2026-01-02"]


def test_parse_day_range_rejects_reversed_and_oversized_ranges():
    assert parse_day_range("2025-12-01", "2025-12-31", 31) == (date(2025, 12, 1), date(2025, 12, 31))

    with pytest.raises(ValidationException):
        parse_day_range("2025-12-31", "2025-12-01", 366)

    with pytest.raises(ValidationException):
        parse_day_range("2025-01-01", "2025-02-15", 31)


def test_week_bounds_start_on_configured_weekday():
    # Wednesday-based week: Saturday 2025-12-27 belongs to Wed 24 .. Tue 30
    start, end = week_bounds(date(2025, 12, 27), week_start_weekday=2)
    assert start == date(2025, 12, 24)
    assert end == date(2025, 12, 30)
    assert end - start == timedelta(days=6)

    start, _ = week_bounds(date(2025, 12, 24), week_start_weekday=2)
    assert start == date(2025, 12, 24)
