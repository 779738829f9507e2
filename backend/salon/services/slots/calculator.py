# backend/salon/services/slots/calculator.py
"""
Level 1: store day window and candidate slot generation.

A day window is what the store's calendar alone says about a date:
closed, or open between two times of day.

Contains:
✓ business_hours of the store (per weekday, cached in Redis with a short TTL)
✓ holidays of the store (always read from the database)
✓ store is_active (always read from the database)

Does NOT contain:
✗ Reservations (checked at Level 2)
✗ Staff (checked at Level 2)
✗ Menu duration (checked at Level 2)
"""

import json
from dataclasses import dataclass
from datetime import date

from redis import Redis
from sqlalchemy.orm import Session

from .config import Weekday, time_str_to_minutes, minutes_to_time_str


@dataclass(frozen=True)
class DayWindow:
    """Opening window of a store on one date (minutes since midnight)."""
    is_open: bool
    open_minute: int = 0
    close_minute: int = 0

    @classmethod
    def closed(cls) -> "DayWindow":
        return cls(is_open=False)

    @property
    def open_time(self) -> str:
        return minutes_to_time_str(self.open_minute)

    @property
    def close_time(self) -> str:
        return minutes_to_time_str(self.close_minute)

    def candidate_times(self, step: int) -> list[str]:
        if not self.is_open:
            return []
        return generate_time_slots(self.open_time, self.close_time, step)

    def to_json(self) -> str:
        if not self.is_open:
            return json.dumps({"closed": True})
        return json.dumps({"open": self.open_time, "close": self.close_time})

    @classmethod
    def from_json(cls, raw: str) -> "DayWindow":
        data = json.loads(raw)
        if data.get("closed"):
            return cls.closed()
        return cls(
            is_open=True,
            open_minute=time_str_to_minutes(data["open"]),
            close_minute=time_str_to_minutes(data["close"]),
        )


def generate_time_slots(
    open_time: str,
    close_time: str,
    interval: int = 30,
) -> list[str]:
    """
    Candidate start times from open_time up to (not including) close_time.

    >>> generate_time_slots("10:00", "12:00", 30)
    ['10:00', '10:30', '11:00', '11:30']
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")

    start_min = time_str_to_minutes(open_time)
    end_min = time_str_to_minutes(close_time)

    slots: list[str] = []
    t = start_min
    while t < end_min:
        slots.append(minutes_to_time_str(t))
        t += interval
    return slots


def calculate_hours_window(
    db: Session,
    store_id: int,
    target_date: date,
) -> DayWindow:
    """
    Opening window from the store's business hours for target_date's weekday.

    Closed when there is no business hour for the weekday or it is marked
    closed. Holidays and store activity are not considered here.
    """
    hours = _get_business_hour(db, store_id, Weekday.from_date(target_date))
    if not hours or not hours.is_open:
        return DayWindow.closed()

    return DayWindow(
        is_open=True,
        open_minute=time_str_to_minutes(hours.open_time),
        close_minute=time_str_to_minutes(hours.close_time),
    )


def calculate_day_window(
    db: Session,
    store_id: int,
    target_date: date,
) -> DayWindow:
    """
    Resolve the store's opening window for target_date.

    Closed when the store is inactive, has no business hour for the weekday,
    the business hour is marked closed, or the date is a holiday.
    """
    if not _store_is_active(db, store_id):
        return DayWindow.closed()

    if _get_holidays(db, store_id, [target_date]):
        return DayWindow.closed()

    return calculate_hours_window(db, store_id, target_date)


def get_day_window(
    db: Session,
    store_id: int,
    target_date: date,
    redis: Redis | None = None,
) -> DayWindow:
    """
    Get the day window, using the Redis cache for business hours when a
    client is given. Store activity and holidays are checked on every call.
    """
    if redis is None:
        return calculate_day_window(db, store_id, target_date)

    if not _store_is_active(db, store_id):
        return DayWindow.closed()

    if _get_holidays(db, store_id, [target_date]):
        return DayWindow.closed()

    from .redis_store import SlotsRedisStore

    store = SlotsRedisStore(redis)
    cached = store.get_day_window(store_id, target_date)
    if cached is not None:
        return cached

    # Cache miss: calculate and store
    window = calculate_hours_window(db, store_id, target_date)
    store.store_day_window(store_id, target_date, window)
    return window


def get_day_windows(
    db: Session,
    store_id: int,
    dates: list[date],
    redis: Redis | None = None,
) -> dict[date, DayWindow]:
    """Batch variant of get_day_window (one holiday query, one MGET, one pipelined write)."""
    if not dates:
        return {}

    if not _store_is_active(db, store_id):
        return {dt: DayWindow.closed() for dt in dates}

    holidays = _get_holidays(db, store_id, dates)
    windows: dict[date, DayWindow] = {dt: DayWindow.closed() for dt in holidays}
    working = [dt for dt in dates if dt not in holidays]

    if redis is None:
        for dt in working:
            windows[dt] = calculate_hours_window(db, store_id, dt)
        return windows

    from .redis_store import SlotsRedisStore

    store = SlotsRedisStore(redis)
    cached = store.mget_windows(store_id, working)

    to_store: dict[date, DayWindow] = {}
    for dt in working:
        window = cached.get(dt)
        if window is None:
            window = calculate_hours_window(db, store_id, dt)
            to_store[dt] = window
        windows[dt] = window

    if to_store:
        store.store_multiple_days(store_id, to_store)

    return windows


# ── Database helpers ─────────────────────────────────────────────────────


def _store_is_active(db: Session, store_id: int) -> bool:
    from ...models.generated import Stores
    store = db.get(Stores, store_id)
    return bool(store and store.is_active)


def _get_holidays(db: Session, store_id: int, dates: list[date]) -> set[date]:
    from ...models.generated import Holidays
    rows = (
        db.query(Holidays.date)
        .filter(
            Holidays.store_id == store_id,
            Holidays.date.in_(dates),
        )
        .all()
    )
    return {row.date for row in rows}


def _get_business_hour(db: Session, store_id: int, weekday: Weekday):
    from ...models.generated import BusinessHours
    return (
        db.query(BusinessHours)
        .filter(
            BusinessHours.store_id == store_id,
            BusinessHours.day_of_week == int(weekday),
        )
        .first()
    )
