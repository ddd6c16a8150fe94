from datetime import date, datetime, timezone

import pytest

from studyroom.core.exceptions import ValidationError
from studyroom.core.time_service import (
    CivilClock,
    as_utc,
    day_of_week,
    minutes_to_time,
    parse_time_to_minutes,
)


def test_clock_strings_and_minute_offsets():
    assert parse_time_to_minutes("00:00") == 0
    assert parse_time_to_minutes("09:30") == 570
    assert parse_time_to_minutes("23:59") == 1439
    assert minutes_to_time(570) == "09:30"
    assert minutes_to_time(0) == "00:00"


@pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "ab:cd", "", None])
def test_malformed_clock_strings_are_rejected(value):
    with pytest.raises(ValidationError):
        parse_time_to_minutes(value)


def test_day_of_week_names():
    assert day_of_week(date(2026, 3, 2)) == "monday"
    assert day_of_week(date(2026, 3, 8)) == "sunday"


def test_today_is_the_civil_date_not_the_utc_date():
    # 15:30 UTC on March 1st is 00:30 on March 2nd in Seoul
    moment = datetime(2026, 3, 1, 15, 30, tzinfo=timezone.utc)
    clock = CivilClock("Asia/Seoul", source=lambda: moment)

    assert clock.today() == date(2026, 3, 2)
    assert clock.clock_string(clock.now()) == "00:30"
    assert clock.minutes_of_day(moment) == 30


def test_combine_builds_a_civil_instant():
    clock = CivilClock("Asia/Seoul")
    instant = clock.combine(date(2026, 3, 2), "09:00")

    assert as_utc(instant) == datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)


def test_naive_instants_are_treated_as_utc():
    naive = datetime(2026, 3, 2, 3, 0)
    assert as_utc(naive) == datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_window_clock_strings():
    clock = CivilClock("Asia/Seoul")
    tick = clock.combine(date(2026, 3, 2), "09:00")

    assert clock.window_clock_strings(tick) == ["09:00"]
    assert clock.window_clock_strings(tick, 3) == ["08:58", "08:59", "09:00"]


def test_localize_reads_naive_instants_as_utc():
    clock = CivilClock("Asia/Seoul")
    naive = datetime(2026, 3, 2, 0, 0)

    assert clock.localize(naive) == clock.combine(date(2026, 3, 2), "09:00")
    assert clock.clock_string(naive) == "09:00"
