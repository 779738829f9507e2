# backend/salon/schemas/reservations.py

import re
from datetime import date as date_type, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


ReservationStatus = Literal["reserved", "visited", "cancelled", "noshow"]
ReservationChannel = Literal["web", "phone"]


def _naive_local(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is not None:
        raise ValueError("must be salon-local time without UTC offset")
    return v


class CustomerInfo(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_email: str = Field(min_length=3)
    customer_phone: str = Field(min_length=1)
    language: str = "ja"

    @field_validator("customer_name", "customer_email", "customer_phone")
    @classmethod
    def strip_value(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("Invalid email address")
        return v.lower()


class ReservationCreate(CustomerInfo):
    """Public booking request (customer flow)."""
    store_id: int
    menu_id: int
    staff_id: Optional[int] = None
    date: date_type = Field(description="Date in YYYY-MM-DD format")
    time: str = Field(description="Time in HH:MM format")
    coupon_code: Optional[str] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def start_time(self) -> datetime:
        return datetime.strptime(f"{self.date.isoformat()} {self.time}", "%Y-%m-%d %H:%M")


class AdminReservationCreate(CustomerInfo):
    """Back-office booking (phone reservations, walk-ins)."""
    store_id: int
    menu_id: int
    staff_id: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None  # defaults to start + menu duration and buffers
    channel: ReservationChannel = "phone"
    status: ReservationStatus = "reserved"
    admin_note: Optional[str] = None
    coupon_code: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def check_naive(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_local(v)

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ReservationUpdate(BaseModel):
    status: Optional[ReservationStatus] = None
    staff_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    menu_id: Optional[int] = None
    admin_note: Optional[str] = None
    send_notification: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def check_naive(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_local(v)


class CancelRequest(BaseModel):
    token: str = Field(min_length=1)


class CancelResponse(BaseModel):
    id: int
    status: ReservationStatus

    model_config = {"from_attributes": True}


class ReservationRead(BaseModel):
    id: int

    store_id: int
    menu_id: int
    staff_id: Optional[int] = None

    start_time: datetime
    end_time: datetime

    customer_name: str
    customer_email: str
    customer_phone: str
    language: str

    channel: ReservationChannel
    status: ReservationStatus

    original_price: int
    discount_amount: int
    final_price: int
    coupon_id: Optional[int] = None
    campaign_id: Optional[int] = None

    admin_note: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class ReservationCreated(BaseModel):
    reservation: ReservationRead
    cancel_token: str
    original_price: int
    discount_amount: int
    final_price: int


class AuditLogRead(BaseModel):
    id: int
    action: str
    changes: Optional[str] = None
    performed_by: str
    performed_at: str

    model_config = {"from_attributes": True}


class ReservationDetail(ReservationRead):
    audit_logs: list[AuditLogRead] = []


class ReservationListResponse(BaseModel):
    reservations: list[ReservationRead]
    page: int
    limit: int
    total: int
    total_pages: int
