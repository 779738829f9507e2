# backend/salon/schemas/stores.py

from typing import Optional

from pydantic import BaseModel


class BusinessHourRead(BaseModel):
    day_of_week: int  # 0 = Sunday
    open_time: str
    close_time: str
    is_open: bool

    model_config = {"from_attributes": True}


class StoreRead(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    business_hours: list[BusinessHourRead] = []

    model_config = {"from_attributes": True}


class MenuRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration: int
    buffer_before: int
    buffer_after: int
    price: int  # pre-tax
    tax_rate: float
    price_with_tax: int
    display_order: int

    model_config = {"from_attributes": True}


class StaffRead(BaseModel):
    id: int
    store_id: int
    name: str
    display_order: int

    model_config = {"from_attributes": True}
