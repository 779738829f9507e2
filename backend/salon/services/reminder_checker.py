"""
Reservation reminder checker.

Emits reservation_reminder events for reservations starting on the next
salon-local day, so customers get a reminder the day before their visit.

Triggered by an external scheduler through POST /internal/reminders/run.
Disabled entirely when the reminder_enabled system setting is false.
"""

import logging
from datetime import datetime, timedelta

from redis import Redis
from sqlalchemy.orm import Session

from ..models.generated import Reservations
from .events import emit_event
from .system_settings import SystemSettings

logger = logging.getLogger(__name__)

SENT_KEY_TTL = 2 * 86400  # 2 days; a reminder is sent once per reservation


def _sent_key(reservation_id: int) -> str:
    return f"rsvremind:sent:{reservation_id}"


def check_upcoming_reservations(
    db: Session,
    system_settings: SystemSettings,
    redis: Redis,
    now: datetime | None = None,
) -> dict:
    """
    Emit a reminder for every reserved reservation starting tomorrow.

    Returns:
        {"sent": n, "skipped": m}; skipped counts reservations already reminded.
    """
    if not system_settings.reminder_enabled:
        logger.info("Reminders disabled, skipping sweep")
        return {"sent": 0, "skipped": 0}

    now = now or system_settings.now()
    day_start = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    day_end = day_start + timedelta(days=1)

    reservations = (
        db.query(Reservations)
        .filter(
            Reservations.status == "reserved",
            Reservations.start_time >= day_start,
            Reservations.start_time < day_end,
        )
        .order_by(Reservations.start_time, Reservations.id)
        .all()
    )

    sent = 0
    skipped = 0
    for reservation in reservations:
        key = _sent_key(reservation.id)
        if redis.exists(key):
            skipped += 1
            continue

        emit_event("reservation_reminder", {
            "reservation_id": reservation.id,
            "language": reservation.language,
        }, redis)
        redis.setex(key, SENT_KEY_TTL, "1")
        sent += 1

        logger.info(
            f"reservation_reminder emitted for reservation={reservation.id} "
            f"(starts at {reservation.start_time.strftime('%Y-%m-%d %H:%M')})"
        )

    logger.info(f"Reminder sweep done: sent={sent}, skipped={skipped}")
    return {"sent": sent, "skipped": skipped}
