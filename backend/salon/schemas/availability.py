# backend/salon/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotRead(BaseModel):
    """One candidate start time of the day."""
    time: str  # "HH:MM"
    available: bool
    free_staff_ids: list[int] = []

    model_config = {"from_attributes": True}


class AvailabilityDayResponse(BaseModel):
    """Per-slot availability of a menu on one day."""
    store_id: int
    menu_id: int
    staff_id: int | None = None
    date: date
    slots: list[SlotRead]

    # Metadata
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")


class CalendarDay(BaseModel):
    """Opening window of a single day in the calendar."""
    date: date
    is_open: bool
    open_time: str | None = None
    close_time: str | None = None


class CalendarResponse(BaseModel):
    """Store calendar between two dates (inclusive)."""
    store_id: int
    start_date: date
    end_date: date
    days: list[CalendarDay]

    booking_range_days: int
