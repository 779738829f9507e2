# backend/salon/services/audit.py
"""
Reservation audit trail.

Every status/time/staff/menu mutation of a reservation appends one row;
rows are never updated or deleted.
"""

import json
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from ..models.generated import ReservationAuditLogs as DBAuditLog


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def write_audit(
    db: Session,
    reservation_id: int,
    action: str,
    changes: dict,
    performed_by: str,
) -> DBAuditLog:
    """Add an audit row to the session (committed by the caller)."""
    entry = DBAuditLog(
        reservation_id=reservation_id,
        action=action,
        changes=json.dumps(changes, default=_json_default, ensure_ascii=False),
        performed_by=performed_by,
        performed_at=utc_timestamp(),
    )
    db.add(entry)
    return entry
