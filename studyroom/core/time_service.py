"""Civil time helpers.

All attendance dates and "HH:mm" comparisons are made in one fixed civil
timezone. Instants that get persisted are converted to UTC first.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from studyroom.core.config import CIVIL_TIMEZONE
from studyroom.core.exceptions import ValidationError

DAY_NAMES = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

CLOCK_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def parse_time_to_minutes(time_string: str) -> int:
    """'09:30' -> 570"""
    if not isinstance(time_string, str) or not CLOCK_PATTERN.match(time_string):
        raise ValidationError(f"Invalid time format: {time_string!r}. Use HH:MM")
    hours, minutes = time_string.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """570 -> '09:30'"""
    if minutes < 0 or minutes >= 24 * 60:
        raise ValidationError(f"Minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored instant to aware UTC (naive values are UTC)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CivilClock:
    """Resolves now/today in the configured civil timezone"""

    def __init__(
        self,
        tz_name: str = CIVIL_TIMEZONE,
        source: Optional[Callable[[], datetime]] = None,
    ):
        self.tz = ZoneInfo(tz_name)
        self._source = source or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._source().astimezone(self.tz)

    def utcnow(self) -> datetime:
        return self._source().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now().date()

    def localize(self, value: datetime) -> datetime:
        """Civil view of an instant (naive values are UTC, as stored)"""
        return as_utc(value).astimezone(self.tz)

    def clock_string(self, value: datetime) -> str:
        return self.localize(value).strftime("%H:%M")

    def minutes_of_day(self, value: datetime) -> int:
        local = self.localize(value)
        return local.hour * 60 + local.minute

    def combine(self, day: date, time_string: str) -> datetime:
        """Civil instant for a date and an 'HH:mm' string"""
        minutes = parse_time_to_minutes(time_string)
        return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=self.tz)

    def window_clock_strings(self, value: datetime, lookback_minutes: int = 0) -> list:
        """Clock strings in (value - lookback, value], same civil day only"""
        current = self.minutes_of_day(value)
        first = max(0, current - lookback_minutes + 1) if lookback_minutes else current
        return [minutes_to_time(m) for m in range(first, current + 1)]


clock = CivilClock()
