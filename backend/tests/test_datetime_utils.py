from __future__ import annotations

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from utils.datetime_utils import (  # noqa: E402
    MalformedDate,
    format_day,
    is_today,
    last_n_days,
    next_day,
    parse_day,
    previous_day,
    week_start,
    week_window,
)


def test_week_window_across_year_boundary():
    assert week_window("2024-12-31") == [
        "2024-12-30",
        "2024-12-31",
        "2025-01-01",
        "2025-01-02",
        "2025-01-03",
        "2025-01-04",
        "2025-01-05",
    ]


def test_sunday_closes_its_week():
    # 2024-03-10 is a Sunday
    assert week_start("2024-03-10") == "2024-03-04"
    assert week_window("2024-03-10")[-1] == "2024-03-10"


def test_week_window_is_monday_first_and_contains_day_for_two_years():
    day = date(2023, 12, 1)
    for _ in range(800):
        key = format_day(day)
        window = week_window(key)
        assert len(window) == 7
        assert key in window
        assert parse_day(window[0]).weekday() == 0
        for earlier, later in zip(window, window[1:]):
            assert next_day(earlier) == later
        assert week_start(week_start(key)) == week_start(key)
        day += timedelta(days=1)


def test_week_window_ignores_dst_transitions():
    # Europe and US DST switches in 2024
    assert week_window("2024-03-31")[0] == "2024-03-25"
    assert week_window("2024-11-03") == [
        "2024-10-28",
        "2024-10-29",
        "2024-10-30",
        "2024-10-31",
        "2024-11-01",
        "2024-11-02",
        "2024-11-03",
    ]


def test_last_n_days_excludes_reference_day():
    assert last_n_days(3, "2024-03-01") == ["2024-02-27", "2024-02-28", "2024-02-29"]
    assert last_n_days(0, "2024-03-01") == []


def test_neighbours_cross_month_and_leap_day():
    assert previous_day("2024-03-01") == "2024-02-29"
    assert next_day("2024-02-28") == "2024-02-29"
    assert next_day("2024-12-31") == "2025-01-01"


def test_parse_and_format_round_trip():
    for value in ("2024-01-01", "1999-12-31", "2024-02-29", "2030-07-04"):
        assert format_day(parse_day(value)) == value


@pytest.mark.parametrize(
    "value",
    [
        "2024-02-30",
        "2024-13-01",
        "20240101",
        "2024-1-01",
        "",
        "yesterday",
        None,
        "2024-01-01\n",
        "\u0662\u0660\u0662\u0664-01-01",  # Arabic-Indic digits
        "\uff12\uff10\uff12\uff14-01-01",  # fullwidth digits
    ],
)
def test_malformed_days_fail_fast(value):
    with pytest.raises(MalformedDate):
        parse_day(value)
    with pytest.raises(MalformedDate):
        week_window(value)


def test_format_day_uses_wall_clock_of_timezone():
    instant = datetime(2024, 6, 1, 2, 30, tzinfo=timezone.utc)
    assert format_day(instant) == "2024-06-01"
    assert format_day(instant, "America/New_York") == "2024-05-31"


def test_is_today_compares_against_given_today():
    assert is_today("2024-06-01", "2024-06-01") is True
    assert is_today("2024-05-31", date(2024, 6, 1)) is False
