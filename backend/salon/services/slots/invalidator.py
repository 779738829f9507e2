# backend/salon/services/slots/invalidator.py
"""
Cache invalidation for store business-hour windows.

Triggers:
✓ Store business_hours changed → invalidate all dates
  (otherwise picked up when the keys expire)

Does NOT trigger:
✗ Holiday created/deleted (read from the database on every lookup)
✗ Store activated/deactivated (read from the database on every lookup)
✗ Reservation created/cancelled (Level 2 calculates on-the-fly)
✗ Staff changes (Level 2)
✗ Menu changes (Level 2)
"""

import logging
from datetime import date, timedelta

from redis import Redis

from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def invalidate_store_cache(
    redis: Redis,
    store_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached windows for a store.

    Args:
        redis: Redis client
        store_id: Store ID
        dates: List of specific dates to invalidate,
               or None to invalidate all cached dates

    Returns:
        Number of deleted cache keys
    """
    store = SlotsRedisStore(redis)
    deleted = store.delete_day_windows(store_id, dates)
    logger.info(f"Slots cache invalidated: store_id={store_id}, deleted={deleted}")
    return deleted


def get_affected_dates(
    date_start: date,
    date_end: date,
) -> list[date]:
    """List of dates in [date_start, date_end] (inclusive, order-insensitive)."""
    if date_start > date_end:
        date_start, date_end = date_end, date_start

    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)

    return dates
