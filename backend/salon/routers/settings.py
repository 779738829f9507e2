# backend/salon/routers/settings.py
# Scalar system settings (key/value rows); unknown keys are ignored

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.settings import SystemSettingsRead, SystemSettingsUpdate
from ..services.system_settings import (
    SystemSettings,
    get_system_settings,
    save_system_settings,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/settings", tags=["settings"])


@router.get("", response_model=SystemSettingsRead)
def read_settings(system_settings: SystemSettings = Depends(get_system_settings)):
    return system_settings


@router.put("", response_model=SystemSettingsRead)
def update_settings(
    data: SystemSettingsUpdate,
    db: Session = Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True)
    updated = save_system_settings(db, changes)
    logger.info(f"System settings updated: keys={sorted(changes)}")
    return updated
