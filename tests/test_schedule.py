from datetime import UTC, date, datetime, time

import pytest

from tournament_engine import InvalidScheduleError, Tournament
from tournament_engine.schedule import (
    combine_schedule,
    format_schedule,
    parse_calendar_date,
    parse_utc_time,
)

TODAY = date(2026, 10, 19)


def test_parse_utc_time_accepts_int_and_padded_string():
    assert parse_utc_time(1600) == time(16, 0, tzinfo=UTC)
    assert parse_utc_time("0930") == time(9, 30, tzinfo=UTC)
    assert parse_utc_time(5) == time(0, 5, tzinfo=UTC)


@pytest.mark.parametrize("raw", ["2400", "1260", "16:00", "abc", "12345", ""])
def test_parse_utc_time_rejects_invalid_values(raw):
    with pytest.raises(InvalidScheduleError):
        parse_utc_time(raw)


def test_parse_calendar_date_fills_missing_fields_from_today():
    assert parse_calendar_date("", today=TODAY) == TODAY
    assert parse_calendar_date("24", today=TODAY) == date(2026, 10, 24)
    assert parse_calendar_date("24/12", today=TODAY) == date(2026, 12, 24)
    assert parse_calendar_date("01/02/2027", today=TODAY) == date(2027, 2, 1)


def test_parse_calendar_date_expands_two_digit_years():
    assert parse_calendar_date("01/02/27", today=TODAY) == date(2027, 2, 1)


@pytest.mark.parametrize("raw", ["31/02", "1/13", "aa/bb", "1/2/3/4"])
def test_parse_calendar_date_rejects_invalid_dates(raw):
    with pytest.raises(InvalidScheduleError):
        parse_calendar_date(raw, today=TODAY)


def test_combine_schedule_returns_aware_utc_datetime():
    moment = combine_schedule(1600, "24", today=TODAY)
    assert moment == datetime(2026, 10, 24, 16, 0, tzinfo=UTC)


def test_format_schedule_is_deterministic():
    moment = datetime(2026, 10, 24, 16, 0, tzinfo=UTC)
    assert format_schedule(moment) == "Saturday 24 October 2026, 16:00 UTC"
    assert format_schedule(moment) == format_schedule(moment)


def test_tournament_generate_uses_schedule_helpers():
    tournament = Tournament.generate("Weekly #1", 1600, "24/10/2026")
    assert tournament.state == "pending"
    assert tournament.get_time_str() == "Saturday 24 October 2026, 16:00 UTC"
