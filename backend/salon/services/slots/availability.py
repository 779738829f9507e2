# backend/salon/services/slots/availability.py
"""
Level 2: menu availability calculation.

For a store, menu, date and optional staff preference, answers for every
candidate start time of the day whether it can be booked and by whom.

Takes into account:
- Store day window (Level 1, cached in Redis)
- Menu duration plus buffers
- Staff pool (one requested staff member or all active staff)
- Existing reserved/visited reservations of the pool
- The current salon-local time and the booking range
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from redis import Redis
from sqlalchemy.orm import Session

from ...errors import NotFound
from .calculator import get_day_window
from .config import BookingConfig, get_booking_config, time_str_to_minutes
from .conflicts import OCCUPYING_STATUSES, BusyInterval, free_staff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAvailability:
    time: str  # "HH:MM"
    available: bool
    free_staff_ids: list[int] = field(default_factory=list)


def resolve_availability(
    db: Session,
    store_id: int,
    menu_id: int,
    target_date: date,
    staff_id: int | None = None,
    *,
    now: datetime,
    booking_range_days: int | None = None,
    config: BookingConfig | None = None,
    redis: Redis | None = None,
) -> list[SlotAvailability]:
    """
    Calculate per-slot availability for a menu on a day.

    Args:
        now: Salon-local "now" (naive). Slots starting at or before it are
             unavailable.
        booking_range_days: Dates further than this from now are unavailable.

    Returns:
        Every candidate slot, available or not. Empty list when the store is
        closed or no staff can serve.

    Raises:
        NotFound: unknown store, or a menu that is unknown, inactive or not
            offered by the store.
    """
    config = config or get_booking_config()

    # Step 1: Store must exist, menu must be bookable there
    store = _get_store(db, store_id)
    if not store:
        raise NotFound("Store not found", store_id=store_id)

    menu = get_bookable_menu(db, store_id, menu_id)
    if not menu:
        raise NotFound("Menu not found or not offered by this store", menu_id=menu_id)

    # Step 2: Store day window (Level 1)
    window = get_day_window(db, store_id, target_date, redis)
    if not window.is_open:
        return []

    # Step 3: Effective duration
    total_min = menu.effective_duration

    # Step 4: Staff pool
    pool = _get_staff_pool(db, store_id, staff_id)
    if not pool:
        return []

    # Step 5: Candidates
    times = window.candidate_times(config.slot_step_minutes)

    day_start = datetime.combine(target_date, datetime.min.time())
    day_end = day_start + timedelta(minutes=window.close_minute)
    busy = [
        BusyInterval.from_reservation(r)
        for r in _get_pool_reservations(db, pool, day_start, day_end)
    ]

    out_of_range = (
        booking_range_days is not None
        and target_date > now.date() + timedelta(days=booking_range_days)
    )

    # Step 6: Per-slot verdict
    result: list[SlotAvailability] = []
    for time_str in times:
        start_min = time_str_to_minutes(time_str)
        slot_start = day_start + timedelta(minutes=start_min)
        slot_end = slot_start + timedelta(minutes=total_min)

        if start_min + total_min > window.close_minute:
            result.append(SlotAvailability(time_str, False))
            continue

        if slot_start <= now or out_of_range:
            result.append(SlotAvailability(time_str, False))
            continue

        free = free_staff(pool, busy, slot_start, slot_end)
        result.append(SlotAvailability(time_str, bool(free), free))

    return result


def find_slot(
    slots: list[SlotAvailability],
    time_str: str,
) -> SlotAvailability | None:
    """Slot entry for time_str, or None if it is not a candidate start."""
    for slot in slots:
        if slot.time == time_str:
            return slot
    return None


# ── Database helpers ─────────────────────────────────────────────────────


def _get_store(db: Session, store_id: int):
    from ...models.generated import Stores
    return db.get(Stores, store_id)


def get_bookable_menu(db: Session, store_id: int, menu_id: int):
    """The menu if it is active and actively offered by the store, else None."""
    from ...models.generated import Menus, StoreMenus

    return (
        db.query(Menus)
        .join(StoreMenus, StoreMenus.menu_id == Menus.id)
        .filter(
            Menus.id == menu_id,
            Menus.is_active == 1,
            StoreMenus.store_id == store_id,
            StoreMenus.is_active == 1,
        )
        .first()
    )


def _get_staff_pool(db: Session, store_id: int, staff_id: int | None) -> list[int]:
    """
    Staff ids eligible for the booking, in display order.

    A requested staff member forms a pool of one if active and working at the
    store; otherwise the pool is empty (no slots, not an error).
    """
    from ...models.generated import Staff

    if staff_id is not None:
        staff = db.get(Staff, staff_id)
        if staff and staff.is_active and staff.store_id == store_id:
            return [staff.id]
        return []

    rows = (
        db.query(Staff.id)
        .filter(
            Staff.store_id == store_id,
            Staff.is_active == 1,
        )
        .order_by(Staff.display_order, Staff.id)
        .all()
    )
    return [row.id for row in rows]


def _get_pool_reservations(
    db: Session,
    staff_ids: list[int],
    window_start: datetime,
    window_end: datetime,
) -> list:
    """Occupying reservations of the pool that touch [window_start, window_end)."""
    from ...models.generated import Reservations

    return (
        db.query(Reservations)
        .filter(
            Reservations.staff_id.in_(staff_ids),
            Reservations.status.in_(OCCUPYING_STATUSES),
            Reservations.start_time < window_end,
            Reservations.end_time > window_start,
        )
        .all()
    )
