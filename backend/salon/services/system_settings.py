# backend/salon/services/system_settings.py
"""
System settings provider.

Scalar key/value rows from the system_settings table, resolved once per
request into an immutable SystemSettings. Missing or malformed rows fall back
to the environment defaults in salon.config.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy.orm import Session

from ..config import settings as env_settings
from ..database import get_db
from ..models.generated import SystemSettings as DBSystemSetting
from .audit import utc_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemSettings:
    timezone: str = "Asia/Tokyo"
    cancel_deadline_hours: int = 24
    booking_range_days: int = 90
    reminder_enabled: bool = True
    default_language: str = "ja"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        """Current salon-local wall-clock time (naive, as stored)."""
        return datetime.now(self.tz).replace(tzinfo=None)


RECOGNIZED_KEYS = tuple(f.name for f in fields(SystemSettings))


def default_system_settings() -> SystemSettings:
    return SystemSettings(
        timezone=env_settings.salon_timezone,
        cancel_deadline_hours=env_settings.cancel_deadline_hours,
        booking_range_days=env_settings.booking_range_days,
    )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _coerce(key: str, raw: str, default):
    try:
        if key == "timezone":
            ZoneInfo(raw)
            return raw
        if isinstance(default, bool):
            return _parse_bool(raw)
        if isinstance(default, int):
            value = int(raw)
            if value < 0:
                raise ValueError(value)
            return value
        return raw
    except (ValueError, ZoneInfoNotFoundError):
        logger.warning(f"Ignoring malformed system setting {key}={raw!r}")
        return default


def load_system_settings(db: Session) -> SystemSettings:
    """Read recognized keys from the database over the defaults."""
    defaults = default_system_settings()
    rows = (
        db.query(DBSystemSetting)
        .filter(DBSystemSetting.key.in_(RECOGNIZED_KEYS))
        .all()
    )

    values = {}
    for row in rows:
        values[row.key] = _coerce(row.key, row.value, getattr(defaults, row.key))

    return SystemSettings(**{**defaults.__dict__, **values})


def save_system_settings(db: Session, updates: dict) -> SystemSettings:
    """Upsert recognized keys (values stored as strings) and reload."""
    for key, value in updates.items():
        if key not in RECOGNIZED_KEYS or value is None:
            continue
        stored = str(value).lower() if isinstance(value, bool) else str(value)
        row = db.query(DBSystemSetting).filter(DBSystemSetting.key == key).first()
        if row:
            row.value = stored
            row.updated_at = utc_timestamp()
        else:
            db.add(DBSystemSetting(key=key, value=stored))
    db.commit()
    return load_system_settings(db)


# FastAPI dependency: resolved once per request
def get_system_settings(db: Session = Depends(get_db)) -> SystemSettings:
    return load_system_settings(db)
