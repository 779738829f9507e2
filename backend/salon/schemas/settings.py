# backend/salon/schemas/settings.py

from typing import Optional

from pydantic import BaseModel, Field, field_validator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class SystemSettingsRead(BaseModel):
    timezone: str
    cancel_deadline_hours: int
    booking_range_days: int
    reminder_enabled: bool
    default_language: str

    model_config = {"from_attributes": True}


class SystemSettingsUpdate(BaseModel):
    timezone: Optional[str] = None
    cancel_deadline_hours: Optional[int] = Field(None, ge=0)
    booking_range_days: Optional[int] = Field(None, ge=0)
    reminder_enabled: Optional[bool] = None
    default_language: Optional[str] = Field(None, min_length=2)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v
