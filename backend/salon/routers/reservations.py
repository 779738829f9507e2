# backend/salon/routers/reservations.py
"""
Public reservation endpoints (customer flow).

POST /reservations                 - book a slot (channel web)
GET  /reservations/by-token        - look up a reservation by its cancel token
POST /reservations/{id}/cancel     - self-service cancellation
"""

from fastapi import APIRouter, Depends, Query, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.reservations import (
    CancelRequest,
    CancelResponse,
    ReservationCreate,
    ReservationCreated,
    ReservationRead,
)
from ..services.reservations import (
    cancel_reservation,
    create_reservation,
    get_reservation_by_token,
)
from ..services.system_settings import SystemSettings, get_system_settings


router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("", response_model=ReservationCreated, status_code=status.HTTP_201_CREATED)
def create_public_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
    system_settings: SystemSettings = Depends(get_system_settings),
):
    result = create_reservation(
        db,
        store_id=data.store_id,
        menu_id=data.menu_id,
        staff_id=data.staff_id,
        start_time=data.start_time,
        customer=data,
        coupon_code=data.coupon_code,
        system_settings=system_settings,
        channel="web",
        performed_by="customer",
        redis=redis,
    )

    return ReservationCreated(
        reservation=ReservationRead.model_validate(result.reservation),
        cancel_token=result.reservation.cancel_token,
        original_price=result.original_price,
        discount_amount=result.discount_amount,
        final_price=result.final_price,
    )


@router.get("/by-token", response_model=ReservationRead)
def read_reservation_by_token(
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    return get_reservation_by_token(db, token)


@router.post("/{reservation_id}/cancel", response_model=CancelResponse)
def cancel_public_reservation(
    reservation_id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
    system_settings: SystemSettings = Depends(get_system_settings),
):
    return cancel_reservation(
        db,
        reservation_id,
        data.token,
        system_settings,
        redis=redis,
    )
