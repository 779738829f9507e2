# backend/salon/routers/availability.py
"""
Availability API endpoints.

Level 1: GET /availability/calendar - Opening windows of a store per day
Level 2: GET /availability - Per-slot availability of a menu on a day
"""

from datetime import date, timedelta
from fastapi import APIRouter, Depends, Query
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.availability import (
    AvailabilityDayResponse,
    CalendarDay,
    CalendarResponse,
    SlotRead,
)
from ..services.slots import (
    get_affected_dates,
    get_booking_config,
    get_day_windows,
    invalidate_store_cache,
    resolve_availability,
)
from ..services.system_settings import SystemSettings, get_system_settings


router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=AvailabilityDayResponse)
def get_availability(
    store_id: int,
    menu_id: int,
    target_date: date = Query(..., alias="date"),
    staff_id: int | None = None,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
    system_settings: SystemSettings = Depends(get_system_settings),
):
    """Per-slot availability of a menu on a day (Level 2)."""
    config = get_booking_config()

    slots = resolve_availability(
        db=db,
        store_id=store_id,
        menu_id=menu_id,
        target_date=target_date,
        staff_id=staff_id,
        now=system_settings.now(),
        booking_range_days=system_settings.booking_range_days,
        config=config,
        redis=redis,
    )

    return AvailabilityDayResponse(
        store_id=store_id,
        menu_id=menu_id,
        staff_id=staff_id,
        date=target_date,
        slots=[
            SlotRead(time=s.time, available=s.available, free_staff_ids=s.free_staff_ids)
            for s in slots
        ],
        slot_step_minutes=config.slot_step_minutes,
    )


@router.get("/calendar", response_model=CalendarResponse)
def get_availability_calendar(
    store_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
    system_settings: SystemSettings = Depends(get_system_settings),
):
    """Opening window of every day in range (Level 1)."""
    today = system_settings.now().date()
    max_date = today + timedelta(days=system_settings.booking_range_days)

    if start_date is None or start_date < today:
        start_date = today
    if end_date is None:
        end_date = start_date + timedelta(days=30)

    if end_date > max_date:
        end_date = max_date

    # Nothing bookable when the range starts past the booking horizon
    dates = get_affected_dates(start_date, end_date) if start_date <= end_date else []
    windows = get_day_windows(db, store_id, dates, redis)

    days = []
    for dt in dates:
        window = windows[dt]
        days.append(CalendarDay(
            date=dt,
            is_open=window.is_open,
            open_time=window.open_time if window.is_open else None,
            close_time=window.close_time if window.is_open else None,
        ))

    return CalendarResponse(
        store_id=store_id,
        start_date=start_date,
        end_date=end_date,
        days=days,
        booking_range_days=system_settings.booking_range_days,
    )


@router.post("/invalidate")
def invalidate_availability_cache(
    store_id: int,
    dates: list[date] | None = None,
    redis: Redis = Depends(get_redis),
):
    """Manually invalidate the store calendar cache (admin endpoint)."""
    deleted = invalidate_store_cache(redis, store_id, dates)

    return {
        "store_id": store_id,
        "deleted_keys": deleted,
        "dates": [d.isoformat() for d in dates] if dates else "all",
    }
