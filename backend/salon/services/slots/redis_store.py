# backend/salon/services/slots/redis_store.py
"""
Redis storage for store business-hour windows per day.

Key format: slots:day:{store_id}:{date}
Value: JSON {"open": "HH:MM", "close": "HH:MM"} or {"closed": true}
       (closed days are cached too so EXISTS answers "calculated").

Only business hours are cached; holidays and store activity are checked
against the database on every lookup. Keys live for
cache_ttl_seconds.
"""

import logging
from datetime import date

from redis import Redis

from .calculator import DayWindow
from .config import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)


class SlotsRedisStore:
    """Redis storage wrapper for per-day store windows."""

    KEY_PREFIX = "slots:day"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, store_id: int, dt: date) -> str:
        return f"{self.KEY_PREFIX}:{store_id}:{dt.isoformat()}"

    @staticmethod
    def _decode(raw) -> str:
        return raw.decode() if isinstance(raw, bytes) else raw

    # ── Write ────────────────────────────────────────────────────────────

    def store_day_window(
        self,
        store_id: int,
        dt: date,
        window: DayWindow,
    ) -> None:
        """Store the calculated window for a day."""
        key = self._key(store_id, dt)
        pipe = self.redis.pipeline()
        pipe.set(key, window.to_json())
        pipe.expire(key, self.config.cache_ttl_seconds)
        pipe.execute()

    def store_multiple_days(
        self,
        store_id: int,
        windows: dict[date, DayWindow],
    ) -> None:
        """Batch store windows for multiple days via pipeline."""
        if not windows:
            return

        pipe = self.redis.pipeline()
        for dt, window in windows.items():
            key = self._key(store_id, dt)
            pipe.set(key, window.to_json())
            pipe.expire(key, self.config.cache_ttl_seconds)
        pipe.execute()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_day_window(
        self,
        store_id: int,
        dt: date,
    ) -> DayWindow | None:
        """
        Get the cached window for a day.

        Returns:
            DayWindow (possibly closed), or None on cache miss.
        """
        raw = self.redis.get(self._key(store_id, dt))
        if raw is None:
            return None
        try:
            return DayWindow.from_json(self._decode(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Corrupt slots cache entry for store=%s date=%s", store_id, dt)
            return None

    def mget_windows(
        self,
        store_id: int,
        dates: list[date],
    ) -> dict[date, DayWindow | None]:
        """
        Batch get windows for multiple dates.

        Returns:
            Dict mapping date → window (or None on cache miss).
        """
        if not dates:
            return {}

        raws = self.redis.mget([self._key(store_id, dt) for dt in dates])

        result: dict[date, DayWindow | None] = {}
        for dt, raw in zip(dates, raws):
            if raw is None:
                result[dt] = None
                continue
            try:
                result[dt] = DayWindow.from_json(self._decode(raw))
            except (ValueError, KeyError, TypeError):
                result[dt] = None
        return result

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_day_windows(
        self,
        store_id: int,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached windows.

        Args:
            store_id: Store ID
            dates: Specific dates, or None to delete all for the store.

        Returns:
            Number of deleted keys.
        """
        if dates:
            keys = [self._key(store_id, dt) for dt in dates]
        else:
            pattern = f"{self.KEY_PREFIX}:{store_id}:*"
            keys = list(self.redis.scan_iter(match=pattern))

        if not keys:
            return 0

        return self.redis.delete(*keys)
