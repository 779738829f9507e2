# backend/salon/routers/internal.py
"""
Internal API endpoints for trusted callers.

POST /internal/reminders/run - triggered by an external scheduler (cron).

Access: when CRON_SECRET is configured the caller must send
`Authorization: Bearer <CRON_SECRET>`.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..redis_client import get_redis
from ..services.reminder_checker import check_upcoming_reservations
from ..services.system_settings import SystemSettings, get_system_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    expected = settings.cron_secret
    if not expected:
        return

    supplied = ""
    if authorization and authorization.startswith("Bearer "):
        supplied = authorization[len("Bearer "):]

    if not secrets.compare_digest(supplied.encode(), expected.encode()):
        logger.warning("Rejected internal call with invalid cron secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.post("/reminders/run", dependencies=[Depends(verify_cron_secret)])
def run_reminders(
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
    system_settings: SystemSettings = Depends(get_system_settings),
):
    return check_upcoming_reservations(db, system_settings, redis)
