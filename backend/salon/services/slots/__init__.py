# backend/salon/services/slots/__init__.py
"""
Slots calculation module.

Level 1: Store day window (business hours cached in Redis)
Level 2: Menu availability per slot and staff (calculated on-the-fly)
"""

from .config import BookingConfig, get_booking_config
from .calculator import DayWindow, generate_time_slots, get_day_window, get_day_windows
from .conflicts import BusyInterval, assign_staff, free_staff, has_conflict
from .redis_store import SlotsRedisStore
from .invalidator import get_affected_dates, invalidate_store_cache
from .availability import SlotAvailability, find_slot, get_bookable_menu, resolve_availability

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "DayWindow",
    "generate_time_slots",
    "get_day_window",
    "get_day_windows",
    "BusyInterval",
    "assign_staff",
    "free_staff",
    "has_conflict",
    "SlotsRedisStore",
    "invalidate_store_cache",
    "get_affected_dates",
    "SlotAvailability",
    "resolve_availability",
    "find_slot",
    "get_bookable_menu",
]
