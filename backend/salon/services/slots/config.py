# backend/salon/services/slots/config.py
"""
Booking configuration and time-of-day helpers for slots calculation.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import IntEnum
from functools import lru_cache


_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the slots system.

    Attributes:
        slot_step_minutes: Candidate grid step (policy constant, not derived
            from menu duration)
        cache_ttl_seconds: Lifetime of a cached business-hours window
    """
    slot_step_minutes: int = 30  # 15 / 30 / 60
    cache_ttl_seconds: int = 300

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton)."""
    return BookingConfig()


class Weekday(IntEnum):
    """Stored weekday index: 0 = Sunday … 6 = Saturday."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, d: date) -> "Weekday":
        # date.weekday() is 0 = Monday
        return cls((d.weekday() + 1) % 7)


def time_str_to_minutes(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Time must be in HH:MM format, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 24 or minute > 59 or (hour == 24 and minute):
        raise ValueError(f"Time out of range: {value!r}")
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
