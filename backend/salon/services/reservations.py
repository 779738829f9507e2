# backend/salon/services/reservations.py
"""
Reservation lifecycle: create, look up, cancel (customer), update (admin).

Reservations are never deleted; they only move between statuses
(reserved → visited / cancelled / noshow), and every mutation appends an
audit row.

Double booking is prevented at write time: the insert is a single
INSERT ... SELECT ... WHERE NOT EXISTS (overlapping active reservation of the
same staff), issued after locking the staff row. The coupon usage claim runs
in the same transaction and is rolled back if the insert loses the race.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from redis import Redis
from sqlalchemy import insert, literal, or_, select
from sqlalchemy.orm import Session

from ..errors import (
    AlreadyCancelled,
    BookingError,
    DeadlinePassed,
    Forbidden,
    InvalidState,
    NotFound,
    SlotUnavailable,
)
from ..models.generated import (
    Menus as DBMenu,
    Reservations as DBReservation,
    Staff as DBStaff,
    Stores as DBStore,
)
from ..schemas.reservations import CustomerInfo
from .audit import utc_timestamp, write_audit
from .discount_resolver import resolve_discount
from .events import emit_event
from .pricing import calculate_original_price
from .slots.availability import find_slot, get_bookable_menu, resolve_availability
from .slots.conflicts import OCCUPYING_STATUSES, BusyInterval, assign_staff
from .system_settings import SystemSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    reservation: DBReservation
    original_price: int
    discount_amount: int
    final_price: int


# ──────────────────────────────────────────────────────────────────────────────
# Create
# ──────────────────────────────────────────────────────────────────────────────

def create_reservation(
    db: Session,
    *,
    store_id: int,
    menu_id: int,
    start_time: datetime,
    customer: CustomerInfo,
    system_settings: SystemSettings,
    staff_id: Optional[int] = None,
    end_time: Optional[datetime] = None,
    coupon_code: Optional[str] = None,
    channel: str = "web",
    status: str = "reserved",
    admin_note: Optional[str] = None,
    performed_by: str = "customer",
    enforce_schedule: bool = True,
    now: Optional[datetime] = None,
    redis: Optional[Redis] = None,
) -> ReservationResult:
    """
    Create a reservation.

    Steps:
    1. Validate store and menu
    2. Resolve the staff member
       - enforce_schedule (customer flow): the start must be an available
         slot of the day; a staff preference must be among its free staff
       - otherwise (admin flow): any interval, given staff or first free one
    3. Price it (coupon claim or campaign)
    4. Guarded insert + audit row, one commit
    5. Emit reservation_created

    Raises:
        NotFound: unknown/inactive store, menu not bookable at the store,
            unknown staff (admin flow)
        SlotUnavailable: no free staff, or lost a race for the slot
    """
    now = now or system_settings.now()

    # Step 1: Validate store and menu
    store = db.get(DBStore, store_id)
    if not store or not store.is_active:
        raise NotFound("Store not found or inactive", store_id=store_id)

    menu = get_bookable_menu(db, store_id, menu_id)
    if not menu:
        raise NotFound("Menu not found or not offered by this store", menu_id=menu_id)

    if end_time is None:
        end_time = start_time + timedelta(minutes=menu.effective_duration)
    if end_time <= start_time:
        raise BookingError("end_time must be after start_time")

    # Step 2: Staff candidates, in assignment order
    if enforce_schedule:
        candidates = _staff_from_availability(
            db, store_id, menu_id, start_time, staff_id, now, system_settings, redis
        )
    else:
        candidates = [_staff_from_pool(db, store_id, staff_id, start_time, end_time)]

    # Step 3: Price
    original_price = calculate_original_price(menu.price, menu.tax_rate)
    quote = resolve_discount(db, store_id, menu_id, original_price, coupon_code, now)

    # Step 4: Guarded insert
    token = secrets.token_urlsafe(32)
    stamp = utc_timestamp()
    values = {
        "store_id": store_id,
        "menu_id": menu_id,
        "staff_id": None,
        "start_time": start_time,
        "end_time": end_time,
        "customer_name": customer.customer_name,
        "customer_email": customer.customer_email,
        "customer_phone": customer.customer_phone,
        "language": customer.language,
        "channel": channel,
        "status": status,
        "original_price": quote.original_price,
        "discount_amount": quote.discount_amount,
        "final_price": quote.final_price,
        "coupon_id": quote.source.coupon_id,
        "campaign_id": quote.source.campaign_id,
        "admin_note": admin_note,
        "cancel_token": token,
        "created_by": performed_by,
        "created_at": stamp,
        "updated_at": stamp,
    }

    assigned_staff_id = None
    for candidate_id in candidates:
        values["staff_id"] = candidate_id
        _lock_staff(db, candidate_id)
        if _insert_if_free(db, values):
            assigned_staff_id = candidate_id
            break
        logger.info(
            f"Reservation insert lost the slot: staff_id={candidate_id}, "
            f"start={start_time.isoformat()}"
        )

    if assigned_staff_id is None:
        db.rollback()
        raise SlotUnavailable(
            "Selected time slot is no longer available",
            staff_ids=candidates,
            start_time=start_time.isoformat(),
        )

    reservation = (
        db.query(DBReservation)
        .filter(DBReservation.cancel_token == token)
        .one()
    )
    write_audit(
        db,
        reservation.id,
        "created",
        {"status": status, "channel": channel},
        performed_by,
    )
    db.commit()
    db.refresh(reservation)

    logger.info(
        f"Reservation created: reservation_id={reservation.id}, store_id={store_id}, "
        f"menu_id={menu_id}, staff_id={assigned_staff_id}, start={start_time.isoformat()}, "
        f"final_price={quote.final_price}, source={quote.source.kind}"
    )

    # Step 5: Confirmation notification (external consumer)
    emit_event("reservation_created", {
        "reservation_id": reservation.id,
        "initiated_by": {
            "role": performed_by,
            "channel": channel,
        },
    }, redis)

    return ReservationResult(
        reservation=reservation,
        original_price=quote.original_price,
        discount_amount=quote.discount_amount,
        final_price=quote.final_price,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Read
# ──────────────────────────────────────────────────────────────────────────────

def get_reservation(db: Session, reservation_id: int) -> DBReservation:
    reservation = db.get(DBReservation, reservation_id)
    if not reservation:
        raise NotFound("Reservation not found", reservation_id=reservation_id)
    return reservation


def get_reservation_by_token(db: Session, token: str) -> DBReservation:
    reservation = (
        db.query(DBReservation)
        .filter(DBReservation.cancel_token == token)
        .first()
    )
    if not reservation:
        raise NotFound("Reservation not found")
    return reservation


def list_reservations(
    db: Session,
    *,
    store_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    menu_id: Optional[int] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[DBReservation], int]:
    """
    Back-office reservation search, newest start first.

    date_from/date_to bound the start date (both inclusive); search matches
    customer name, email or phone as a substring.

    Returns:
        (page of reservations, total matching)
    """
    query = db.query(DBReservation)

    if store_id is not None:
        query = query.filter(DBReservation.store_id == store_id)
    if staff_id is not None:
        query = query.filter(DBReservation.staff_id == staff_id)
    if menu_id is not None:
        query = query.filter(DBReservation.menu_id == menu_id)
    if status is not None:
        query = query.filter(DBReservation.status == status)
    if date_from is not None:
        query = query.filter(DBReservation.start_time >= datetime.combine(date_from, datetime.min.time()))
    if date_to is not None:
        day_after = datetime.combine(date_to + timedelta(days=1), datetime.min.time())
        query = query.filter(DBReservation.start_time < day_after)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            DBReservation.customer_name.ilike(pattern),
            DBReservation.customer_email.ilike(pattern),
            DBReservation.customer_phone.ilike(pattern),
        ))

    total = query.count()
    reservations = (
        query
        .order_by(DBReservation.start_time.desc(), DBReservation.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return reservations, total


# ──────────────────────────────────────────────────────────────────────────────
# Cancel (customer self-service)
# ──────────────────────────────────────────────────────────────────────────────

def cancel_reservation(
    db: Session,
    reservation_id: int,
    token: str,
    system_settings: SystemSettings,
    now: Optional[datetime] = None,
    redis: Optional[Redis] = None,
) -> DBReservation:
    """
    Cancel with the reservation's cancel token.

    Allowed only while now < start_time - cancel_deadline_hours.
    """
    now = now or system_settings.now()
    reservation = get_reservation(db, reservation_id)

    if not token or not secrets.compare_digest(
        reservation.cancel_token.encode(), token.encode()
    ):
        raise Forbidden("Invalid cancel token")

    if reservation.status == "cancelled":
        raise AlreadyCancelled("Reservation is already cancelled")

    if reservation.status != "reserved":
        raise InvalidState(
            f"Reservation with status {reservation.status!r} cannot be cancelled",
            status=reservation.status,
        )

    deadline = reservation.start_time - timedelta(hours=system_settings.cancel_deadline_hours)
    if now >= deadline:
        raise DeadlinePassed(
            "Cancellation deadline has passed",
            deadline=deadline.isoformat(),
        )

    previous_status = reservation.status
    reservation.status = "cancelled"
    reservation.updated_by = "customer"
    reservation.updated_at = utc_timestamp()

    write_audit(
        db,
        reservation.id,
        "cancelled",
        {"status": "cancelled", "previous_status": previous_status},
        "customer",
    )
    db.commit()
    db.refresh(reservation)

    logger.info(f"Reservation cancelled by customer: reservation_id={reservation.id}")

    emit_event("reservation_cancelled", {
        "reservation_id": reservation.id,
        "initiated_by": {"role": "customer"},
    }, redis)

    return reservation


# ──────────────────────────────────────────────────────────────────────────────
# Update (admin)
# ──────────────────────────────────────────────────────────────────────────────

_DIFFED_FIELDS = ("status", "staff_id", "start_time", "end_time", "menu_id")


def update_reservation(
    db: Session,
    reservation_id: int,
    patch: dict,
    performed_by: str = "admin",
    send_notification: bool = False,
    redis: Optional[Redis] = None,
) -> DBReservation:
    """
    Apply a partial admin update and record the change-set.

    patch holds only the fields the caller set. A menu change reprices the
    reservation from the new menu, keeping the discount amount (capped at the
    new price). Staff/time changes of an active reservation are checked for
    conflicts.
    """
    reservation = get_reservation(db, reservation_id)

    changes: dict[str, dict] = {}
    updates: dict = {}

    for field in _DIFFED_FIELDS:
        if field not in patch:
            continue
        value = patch[field]
        if field in ("status", "start_time", "end_time", "menu_id") and value is None:
            continue
        current = getattr(reservation, field)
        if value != current:
            changes[field] = {"from": current, "to": value}
            updates[field] = value

    if "staff_id" in updates and updates["staff_id"] is not None:
        staff = db.get(DBStaff, updates["staff_id"])
        if not staff or staff.store_id != reservation.store_id:
            raise NotFound("Staff not found", staff_id=updates["staff_id"])

    if "menu_id" in updates:
        menu = db.get(DBMenu, updates["menu_id"])
        if not menu:
            raise NotFound("Menu not found", menu_id=updates["menu_id"])
        original_price = calculate_original_price(menu.price, menu.tax_rate)
        discount_amount = min(reservation.discount_amount, original_price)
        final_price = original_price - discount_amount
        for field, value in (
            ("original_price", original_price),
            ("discount_amount", discount_amount),
            ("final_price", final_price),
        ):
            if getattr(reservation, field) != value:
                changes[field] = {"from": getattr(reservation, field), "to": value}
            updates[field] = value

    new_start = updates.get("start_time", reservation.start_time)
    new_end = updates.get("end_time", reservation.end_time)
    if new_end <= new_start:
        raise BookingError("end_time must be after start_time")

    new_status = updates.get("status", reservation.status)
    new_staff_id = updates.get("staff_id", reservation.staff_id)
    moves_slot = any(f in updates for f in ("staff_id", "start_time", "end_time", "status"))
    if moves_slot and new_status in OCCUPYING_STATUSES and new_staff_id is not None:
        _lock_staff(db, new_staff_id)
        if _has_other_overlap(db, reservation.id, new_staff_id, new_start, new_end):
            raise SlotUnavailable(
                "Staff member already has a reservation in this time range",
                staff_id=new_staff_id,
            )

    for field, value in updates.items():
        setattr(reservation, field, value)
    if "admin_note" in patch:
        reservation.admin_note = patch["admin_note"]

    reservation.updated_by = performed_by
    reservation.updated_at = utc_timestamp()

    if changes:
        action = "status_changed" if "status" in changes else "updated"
        write_audit(db, reservation.id, action, changes, performed_by)

    db.commit()
    db.refresh(reservation)

    if changes:
        logger.info(
            f"Reservation updated: reservation_id={reservation.id}, "
            f"fields={sorted(changes)}, by={performed_by}"
        )
        if send_notification:
            emit_event("reservation_updated", {
                "reservation_id": reservation.id,
                "fields": sorted(changes),
                "initiated_by": {"role": performed_by},
            }, redis)

    return reservation


# ──────────────────────────────────────────────────────────────────────────────
# Helper functions
# ──────────────────────────────────────────────────────────────────────────────

def _staff_from_availability(
    db: Session,
    store_id: int,
    menu_id: int,
    start_time: datetime,
    staff_id: Optional[int],
    now: datetime,
    system_settings: SystemSettings,
    redis: Optional[Redis],
) -> list[int]:
    """Free staff for a customer booking, in display order: the slot must be offered."""
    slots = resolve_availability(
        db=db,
        store_id=store_id,
        menu_id=menu_id,
        target_date=start_time.date(),
        staff_id=staff_id,
        now=now,
        booking_range_days=system_settings.booking_range_days,
        redis=redis,
    )

    slot = None
    if start_time.second == 0 and start_time.microsecond == 0:
        slot = find_slot(slots, start_time.strftime("%H:%M"))

    if slot is None or not slot.available:
        raise SlotUnavailable(
            "Selected time slot is not available",
            start_time=start_time.isoformat(),
            staff_id=staff_id,
        )

    # Pool order = display order, so the first entry is the deterministic auto-assignment
    return list(slot.free_staff_ids)


def _staff_from_pool(
    db: Session,
    store_id: int,
    staff_id: Optional[int],
    start_time: datetime,
    end_time: datetime,
) -> int:
    """Staff for an admin booking: the given one, or the first free active one."""
    if staff_id is not None:
        staff = db.get(DBStaff, staff_id)
        if not staff or staff.store_id != store_id:
            raise NotFound("Staff not found", staff_id=staff_id)
        return staff.id

    pool = [
        row.id
        for row in (
            db.query(DBStaff.id)
            .filter(DBStaff.store_id == store_id, DBStaff.is_active == 1)
            .order_by(DBStaff.display_order, DBStaff.id)
            .all()
        )
    ]
    busy = [
        BusyInterval.from_reservation(r)
        for r in (
            db.query(DBReservation)
            .filter(
                DBReservation.staff_id.in_(pool),
                DBReservation.status.in_(OCCUPYING_STATUSES),
                DBReservation.start_time < end_time,
                DBReservation.end_time > start_time,
            )
            .all()
        )
    ] if pool else []

    assigned = assign_staff(pool, busy, start_time, end_time)
    if assigned is None:
        raise SlotUnavailable(
            "No staff available for this time range",
            start_time=start_time.isoformat(),
        )
    return assigned


def _lock_staff(db: Session, staff_id: int) -> None:
    """Serialize bookings per staff member (SELECT ... FOR UPDATE; no-op on SQLite)."""
    db.query(DBStaff.id).filter(DBStaff.id == staff_id).with_for_update().first()


def _overlapping(staff_id: int, start: datetime, end: datetime):
    return (
        select(DBReservation.id)
        .where(
            DBReservation.staff_id == staff_id,
            DBReservation.status.in_(OCCUPYING_STATUSES),
            DBReservation.start_time < end,
            DBReservation.end_time > start,
        )
        .correlate(None)
    )


def _insert_if_free(db: Session, values: dict) -> bool:
    """
    Insert the reservation unless its staff already has an overlapping active
    reservation. One statement, so the check cannot be interleaved.

    Returns False when nothing was inserted.
    """
    table = DBReservation.__table__
    names = list(values)
    source = select(*[literal(values[name], type_=table.c[name].type) for name in names])

    if values["status"] in OCCUPYING_STATUSES:
        overlapping = _overlapping(values["staff_id"], values["start_time"], values["end_time"])
        source = source.where(~overlapping.exists())

    result = db.execute(insert(table).from_select(names, source))
    return result.rowcount == 1


def _has_other_overlap(
    db: Session,
    reservation_id: int,
    staff_id: int,
    start: datetime,
    end: datetime,
) -> bool:
    query = _overlapping(staff_id, start, end).where(DBReservation.id != reservation_id)
    return db.execute(query.limit(1)).first() is not None
