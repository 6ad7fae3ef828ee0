"""Wall-clock helpers for availability rules.

Rules store their bounds as zero padded ``"HH:MM"`` strings. Comparisons are
done on ``TimeOfDay`` values (minutes since midnight) so the result no longer
depends on the string format.
"""

import re
from datetime import date, datetime, time, timedelta
from functools import total_ordering
from typing import Optional
from zoneinfo import ZoneInfo

from salon_booking.core.config import settings

_HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@total_ordering
class TimeOfDay:
    """A wall-clock time expressed as minutes since midnight."""

    __slots__ = ("minutes",)

    def __init__(self, minutes: int):
        if not 0 <= minutes < 24 * 60:
            raise ValueError(f"Minutes since midnight out of range: {minutes}")
        self.minutes = minutes

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """Parse a 24h ``HH:MM`` string."""
        match = _HHMM_PATTERN.match(value or "")
        if not match:
            raise ValueError(f"Invalid time of day '{value}', expected HH:MM")
        return cls(int(match.group(1)) * 60 + int(match.group(2)))

    @classmethod
    def from_datetime(cls, value: datetime) -> "TimeOfDay":
        """Wall-clock portion of ``value``; seconds are truncated."""
        return cls(value.hour * 60 + value.minute)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def anchor(self, day: date, tz: ZoneInfo) -> datetime:
        """Absolute instant of this wall-clock time on ``day`` in ``tz``."""
        midnight = datetime.combine(day, time.min, tzinfo=tz)
        return midnight + timedelta(minutes=self.minutes)

    def __eq__(self, other):
        if not isinstance(other, TimeOfDay):
            return NotImplemented
        return self.minutes == other.minutes

    def __lt__(self, other):
        if not isinstance(other, TimeOfDay):
            return NotImplemented
        return self.minutes < other.minutes

    def __hash__(self):
        return hash(self.minutes)

    def __str__(self):
        return f"{self.hour:02d}:{self.minute:02d}"

    def __repr__(self):
        return f"TimeOfDay('{self}')"


def is_valid_hhmm(value: str) -> bool:
    return bool(value) and bool(_HHMM_PATTERN.match(value))


def business_timezone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or settings.BUSINESS_TIMEZONE)


def to_business_time(value: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Express ``value`` in the business timezone.

    Naive datetimes are taken to already be business-local wall clock.
    """
    tz = tz or business_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def day_of_week(day: date) -> int:
    """Calendar weekday with Sunday as 0 and Saturday as 6."""
    return (day.weekday() + 1) % 7
