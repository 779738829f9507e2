# backend/salon/services/slots/conflicts.py
"""
Conflict detection between a candidate interval and existing reservations.

All intervals are half-open [start, end): a reservation ending exactly when
another begins does not conflict with it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence


# Statuses that keep a staff member busy
OCCUPYING_STATUSES = ("reserved", "visited")


@dataclass(frozen=True)
class BusyInterval:
    staff_id: Optional[int]
    start: datetime
    end: datetime
    status: str = "reserved"

    @classmethod
    def from_reservation(cls, reservation) -> "BusyInterval":
        return cls(
            staff_id=reservation.staff_id,
            start=reservation.start_time,
            end=reservation.end_time,
            status=reservation.status,
        )

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    return a_start < b_end and b_start < a_end


def has_conflict(
    start: datetime,
    end: datetime,
    intervals: Iterable[BusyInterval],
) -> bool:
    """True if [start, end) overlaps any occupying interval."""
    return any(
        iv.is_occupying and intervals_overlap(start, end, iv.start, iv.end)
        for iv in intervals
    )


def free_staff(
    pool: Sequence[int],
    intervals: Iterable[BusyInterval],
    start: datetime,
    end: datetime,
) -> list[int]:
    """Staff ids from pool (order kept) with nothing booked over [start, end)."""
    by_staff: dict[int, list[BusyInterval]] = {}
    for iv in intervals:
        if iv.staff_id is not None:
            by_staff.setdefault(iv.staff_id, []).append(iv)

    return [
        staff_id
        for staff_id in pool
        if not has_conflict(start, end, by_staff.get(staff_id, ()))
    ]


def assign_staff(
    pool: Sequence[int],
    intervals: Iterable[BusyInterval],
    start: datetime,
    end: datetime,
) -> Optional[int]:
    """
    Pick a staff member for a booking without a staff preference.

    Returns the first free staff in pool order (display order), or None when
    everyone is busy.
    """
    free = free_staff(pool, intervals, start, end)
    return free[0] if free else None
